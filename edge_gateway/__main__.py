import uvicorn

from edge_gateway.vars import HOST, PORT


def main() -> None:
    uvicorn.run("edge_gateway.server:app", host=HOST, port=PORT)


if __name__ == "__main__":
    main()
