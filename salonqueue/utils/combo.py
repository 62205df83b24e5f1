import random
import time


def generate_combo_id() -> str:
    """Id shared by the legs of a combo booking, e.g. COMBO-1718000000000-042"""
    timestamp = int(time.time() * 1000)
    return f"COMBO-{timestamp}-{random.randint(0, 999):03d}"
