import uvicorn
from rssy.core.config import settings


def main():
    # log_config=None keeps the JSON handlers installed at startup
    uvicorn.run("rssy.main:app", host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    main()
