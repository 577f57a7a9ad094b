"""Configuration helpers shared across packages."""

from ht_common.config.env import parse_bool_env, parse_float_env, parse_float_prefix

__all__ = ["parse_bool_env", "parse_float_env", "parse_float_prefix"]
