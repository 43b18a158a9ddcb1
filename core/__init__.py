"""
SmartScan Core — Public API

from core import ScanEngine, ScanConfig, parse_range
"""
from core.cidr          import (AddressRange, InvalidRangeFormat, parse as parse_range,
                                network_bounds, sub_blocks_of, sample_addresses,
                                addresses_of)
from core.config        import ScanConfig, ConfigError, load_config_file
from core.events        import ScanObserver, LoggingObserver, MultiObserver
from core.executor      import BoundedExecutor, CancelFlag, ScanAborted
from core.probes        import Prober, SystemProber, PingResult
from core.recheck       import RecheckReport, RecheckError, recheck_addresses, load_address_list
from core.results       import ValidEntry, ScanReport
from core.sources       import (RangeSource, RemoteRangeSource, FileRangeSource,
                                FallbackRangeSource, RangeSourceError)
from core.timing        import get_timing, RateMeter
from core.scanner_engine import ScanEngine, ScanSetupError, HotBlockSet

__all__ = [
    "ScanEngine", "ScanSetupError", "HotBlockSet",
    "AddressRange", "InvalidRangeFormat", "parse_range", "network_bounds",
    "sub_blocks_of", "sample_addresses", "addresses_of",
    "ScanConfig", "ConfigError", "load_config_file",
    "ScanObserver", "LoggingObserver", "MultiObserver",
    "BoundedExecutor", "CancelFlag", "ScanAborted",
    "Prober", "SystemProber", "PingResult",
    "RecheckReport", "RecheckError", "recheck_addresses", "load_address_list",
    "ValidEntry", "ScanReport",
    "RangeSource", "RemoteRangeSource", "FileRangeSource",
    "FallbackRangeSource", "RangeSourceError",
    "get_timing", "RateMeter",
]
