import logging
from datetime import datetime

DEBUG_LOG = "./make_device_image_debug.log"

# === COLOR LOGGING ===
class Colors:
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[0;34m'
    CYAN = '\033[0;36m'
    NC = '\033[0m'

logger = logging.getLogger("devimage")

# === LOGGING SYSTEM ===
def setup_logging(debug=False, log_file=DEBUG_LOG):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        handlers=handlers,
        force=True
    )
    return logger

def _now():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')

def log(message):
    logger.info(f"{Colors.GREEN}[{_now()}]{Colors.NC} {message}")

def debug(message):
    logger.debug(f"{Colors.CYAN}[DEBUG][{_now()}]{Colors.NC} {message}")

def error(message):
    logger.error(f"{Colors.RED}[{_now()}] ERROR:{Colors.NC} {message}")

def warn(message):
    logger.warning(f"{Colors.YELLOW}[{_now()}] WARN:{Colors.NC} {message}")
