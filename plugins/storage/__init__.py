"""
plugins/storage - Azure Storage 메트릭 업데이터

스토리지 계정 정보와 blob 컨테이너별 blob 수/크기/스냅샷 수를 수집합니다.
컨테이너의 모든 blob을 순회하므로 기본 수집 주기가 batch보다 깁니다.
"""

UPDATER = {
    "name": "storage",
    "display_name": "Azure Storage",
    "description": "스토리지 계정 및 blob 컨테이너 사용량 메트릭",
    "description_en": "Storage account and blob container usage metrics",
    "surface": "storage",
    "module": "metrics",
    "interval": 300,
}
