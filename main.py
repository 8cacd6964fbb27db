import uvicorn

from worldmeet import config
from worldmeet.app import app
from worldmeet.logging_config import setup_logging

if __name__ == "__main__":
    setup_logging(log_level=config.LOG_LEVEL, log_file=config.LOG_FILE)
    uvicorn.run(app, host=config.HOST, port=config.PORT)
