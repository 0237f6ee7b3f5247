import uvicorn

from rewrite_proxy.vars import HOST, LOG_LEVEL, PORT


def main():
    uvicorn.run("rewrite_proxy.server:app", host=HOST, port=PORT, log_level=LOG_LEVEL)


if __name__ == "__main__":
    main()
