"""
Labour configuration (``labour_config``).

Seed data for the rate configuration singleton, stored as YAML next to this
package and parsed by ``labour_config.loader``.
"""

from labour_config.loader import DEFAULTS_PATH, load_rate_config, parse_rate_config

__all__ = ["DEFAULTS_PATH", "load_rate_config", "parse_rate_config"]
