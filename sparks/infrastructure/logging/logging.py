import logging
import sys
from typing import Optional

from sparks.core.config import get_settings

# 文件服务自身的处理器标记，重复初始化时据此替换而不是叠加
_HANDLER_NAME = "sparks-console"

# 上传/下载时每个请求都会输出日志的第三方库
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "minio", "sqlalchemy.engine")


def setup_logging(log_level: Optional[str] = None) -> logging.Handler:
    """初始化服务端与CLI脚本共用的日志配置

    日志格式中带上运行环境，便于区分API服务与对账/上传脚本的输出。
    可重复调用，根日志记录器上只会保留一个控制台处理器。
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    # 1.移除之前初始化时挂载的处理器
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)

    # 2.控制台处理器，格式中带上运行环境
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            f"%(asctime)s - sparks[{settings.env}] - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    # 3.调试级别以外压低第三方库的请求日志
    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"日志记录器已初始化，环境: {settings.env}, 日志级别: {level_name}")
    return console_handler
