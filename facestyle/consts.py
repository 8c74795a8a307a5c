# facestyle/consts.py
"""
Constants shared by the facestyle modules.
Centralized so the guide builder, lookup cube and stylizer agree on them.
"""

# --- MLS Warp ---
GRID_SIZE = 10  # grid stride of the displacement field (also debug grid spacing)

# --- Appearance Guide ---
MEAN = 128  # residual is centred at mid grey
PYR_KERNEL = (1, 4, 6, 4, 1)  # binomial kernel for pyramid downsampling
PYR_KERNEL_SUM = 256  # (1+4+6+4+1) ** 2

# --- Lookup Cube ---
CUBE_SIZE = 256
LAMBDA_POS = 10
LAMBDA_APP = 2
SEARCH_RADIUS = 30
NUM_WORKERS = 8
LUT_SUFFIX = "_lut.bytes"

# --- Style Blit ---
BLIT_THRESHOLD = 50

# --- Post-processing ---
SKIN_ERROR_THRESHOLD = 80
SKIN_SAMPLE_STEP = 5
BLEND_KERNEL_SIZE = 20

# --- Landmarks ---
NUM_LANDMARKS = 68
