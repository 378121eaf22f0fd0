"""uvicorn 실행 진입점 (python -m src.main)"""
import uvicorn

from src.core.config import settings


def main() -> None:
    uvicorn.run(
        "src.app:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
