# oscdmx/osc_codec.py
# -----------------------------------------------------------------------------
# OSC message framing for OLA's DMX-over-OSC input.
#
#   padded(address) ++ padded(type_tag) ++ int32(channel) ++ int32(level)
#
# Strings are null terminated and padded to a 4-byte boundary (always at least
# one NUL). Integers are big-endian two's-complement. No length prefix: over UDP
# the datagram boundary frames the message.
#
# The primitive encoders come from python-osc so our bytes are exactly what any
# python-osc receiver (OLA's osc plugin, tools/osc_listen.py) expects.
# -----------------------------------------------------------------------------

from __future__ import annotations

from pythonosc.parsing import osc_types

DMX_ADDRESS_PREFIX = "/dmx/universe/"
DMX_ADDRESS_TEMPLATE = DMX_ADDRESS_PREFIX + "{universe}"
DMX_TYPE_TAG = ",ii"  # two int32 args: channel, level


def pad_string(value: str) -> bytes:
    """Encode `value` as an OSC string (NUL terminated, 4-byte aligned)."""
    return osc_types.write_string(value)


def encode_int32(value: int) -> bytes:
    return osc_types.write_int(value)


def dmx_address(universe: int, template: str = DMX_ADDRESS_TEMPLATE) -> str:
    """OSC address pattern for a universe, e.g. 1 -> '/dmx/universe/1'."""
    return template.format(universe=universe)


def encode_dmx_message(address: str, type_tag: str, channel: int, level: int) -> bytes:
    """Build one OSC datagram carrying (channel, level) for `address`."""
    return (
        pad_string(address)
        + pad_string(type_tag)
        + encode_int32(channel)
        + encode_int32(level)
    )
