"""SmartScan Utils"""
from utils.logger     import get_logger, log
from utils.validators import validate_range, validate_port, validate_host_header
from utils.constants  import ScanState, Stage, TIMING_PROFILES
__all__ = ["get_logger", "log", "validate_range", "validate_port",
           "validate_host_header", "ScanState", "Stage", "TIMING_PROFILES"]
