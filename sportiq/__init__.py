"""FastAPI 애플리케이션을 지연 생성 방식으로 노출하는 초기화 모듈.

외부 엔트리포인트가 `get_app()`을 호출할 때 앱을 만들며,
코퍼스 로드와 모델 학습은 lifespan에서만 일어납니다.
"""

from functools import lru_cache


@lru_cache(maxsize=1)
def get_app():
    from .main import create_app

    return create_app()
