import uvicorn

from datepoll.config import get_settings


def main() -> None:
    settings = get_settings().server
    uvicorn.run("datepoll.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
