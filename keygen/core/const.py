"""
Constants module for the Snowflake key generator.
"""

# Sign bit, always 0 so ids stay positive as signed 64-bit integers
UNUSED_BITS = 1

# Milliseconds since the custom epoch
EPOCH_BITS = 41

# Identifies the issuing node in the cluster
NODE_ID_BITS = 10

# Per-millisecond counter, reset when the timestamp advances
SEQUENCE_BITS = 12

MAXIMUM_NODE_ID = (1 << NODE_ID_BITS) - 1  # 1023
MAXIMUM_SEQUENCE = (1 << SEQUENCE_BITS) - 1  # 4095
MAXIMUM_TIMESTAMP = (1 << EPOCH_BITS) - 1

NODE_ID_SHIFT = SEQUENCE_BITS
TIMESTAMP_SHIFT = NODE_ID_BITS + SEQUENCE_BITS

# Largest value that fits the 63 usable bits
MAXIMUM_ID = (1 << (EPOCH_BITS + NODE_ID_BITS + SEQUENCE_BITS)) - 1

# December 20, 2022 (UTC), in milliseconds since the Unix epoch.
# Must be identical on every node sharing an id space.
DEFAULT_EPOCH = 1671531200000

# Sentinel for "no id issued yet"
UNSET_TIMESTAMP = -1
