from sportiq import get_app

# 로깅 설정은 lifespan의 configure_logging()이 담당
app = get_app()
