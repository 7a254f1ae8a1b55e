"""
plugins/batch - Azure Batch 메트릭 업데이터

Batch 계정 쿼터, 풀 노드 수/상태, 잡 태스크 카운트/상태를 수집합니다.
"""

UPDATER = {
    "name": "batch",
    "display_name": "Azure Batch",
    "description": "Batch 계정/풀/컴퓨트 노드/잡 메트릭",
    "description_en": "Batch account, pool, compute node and job metrics",
    "surface": "batch",
    "module": "metrics",
}
