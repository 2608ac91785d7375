# ===== SITE SETTINGS =====
# Side length of the square site grid, in tiles.
SITE_SIZE = 50

# Which demo site run.py builds. Options:
#   "open"       walled border with a few openings, open interior
#   "two_gaps"   walled border with 3-wide gaps on the north and south edges
#   "cramped"    rock everywhere except narrow corridors (no anchor fits)
DEMO_SITE = "open"

# Demo site name, used as the PlanStore key.
SITE_NAME = "W1N1"

# ===== TIER / ENERGY =====
# Unlock tier (1 to 8) and energy capacity the demo site is planned at.
# Capacity is normally the tier's target capacity (300, 550, 800, 1300,
# 1800, 2300, 5600, 12900), but a freshly-upgraded colony lags behind it.
DEMO_TIER = 4
DEMO_ENERGY_CAPACITY = 1300

# How much of the plan run.py marks as built before sizing the workforce:
# the source containers (so the colony leaves bootstrap) plus this many of
# the planned towers. Everything else counts as pending construction.
DEMO_BUILD_SOURCE_CONTAINERS = True
DEMO_TOWERS = 1

# ===== FORTIFICATION =====
# Entrance sealing policy. The two policies are alternatives; never both.
#   "bookend"  one wall just past each end of every opening
#   "curtain"  a wall line two tiles in, with a single gate per opening
FORTIFICATION_POLICY = "curtain"

# Seal the border even when no base anchor could be found this pass.
SEAL_WITHOUT_ANCHOR = False

# ===== PLANNING PASSES =====
# How many passes run.py runs back to back. Every pass after the first
# should add nothing.
DEMO_PASSES = 2
