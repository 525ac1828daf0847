"""进程入口：使用 uvicorn 启动代理服务。"""

import uvicorn

from dust_proxy.config.settings import settings
from dust_proxy.infrastructure.logging.logger import logger


def main() -> None:
    logger.info(
        "server.start",
        extra={"extra": {
            "host": settings.host,
            "port": settings.port,
            "strategy": settings.default_strategy,
            "credentials": settings.has_credentials,
        }},
    )
    uvicorn.run("dust_proxy.api.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
