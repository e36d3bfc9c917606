"""
TierBoard 서버 패키지 초기화 모듈.

서버 구성 요소는 다음 하위 모듈에 정리되어 있다.
- protocol: JSON line 기반 프레이밍/직렬화, 이벤트 이름
- board: 티어 보드 저장소 및 변경 검증
- hub: 세션 릴레이와 브로드캐스트
- main: TCP 서버 진입점
"""

__all__ = [
    "board",
    "hub",
    "main",
    "protocol",
]
