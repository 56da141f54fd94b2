"""
日志配置 - 仅供交互层使用，分配引擎本身不记录日志
"""

import logging
import os
from datetime import datetime
from typing import Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

logger = logging.getLogger('DiskSim')


def setup_logging(level: int = logging.WARNING, log_dir: Optional[str] = None) -> logging.Logger:
    """
    配置日志
    log_dir 给定时额外写入 log_dir/disksim_YYYYMMDD.log
    """
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f'disksim_{datetime.now().strftime("%Y%m%d")}.log')
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logger.setLevel(level)
    return logger
