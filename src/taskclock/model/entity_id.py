# SPDX-License-Identifier: MIT

import uuid
from typing import TypeAlias

EntityId: TypeAlias = str

ENTRY_ID_PREFIX = "e_"


def generate_entry_id() -> EntityId:
    # 10 hex chars of a uuid4.
    return f"{ENTRY_ID_PREFIX}{uuid.uuid4().hex[:10]}"
