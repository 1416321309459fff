"""Start the gateway with uvicorn: ``python -m univai_mcp``."""

import uvicorn

from univai_mcp.config import load_config


def main() -> None:
    config = load_config()
    uvicorn.run("univai_mcp.server:app", host="0.0.0.0", port=config.port, log_config=None)


if __name__ == "__main__":
    main()
