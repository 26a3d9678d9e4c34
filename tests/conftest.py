import os

# Use litellm's bundled model cost map instead of fetching it in a background
# thread at import time (that thread can deadlock imports when offline).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")
