import logging

from pythonjsonlogger import jsonlogger


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    handler = logging.StreamHandler()
    if json_output:
        formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                             rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    else:
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)

    logger = logging.getLogger()
    # create_app() may run more than once in one process (tests, reloaders)
    for existing in list(logger.handlers):
        if getattr(existing, "_labelprint", False):
            logger.removeHandler(existing)
    handler._labelprint = True
    logger.addHandler(handler)
    logger.setLevel(level)
