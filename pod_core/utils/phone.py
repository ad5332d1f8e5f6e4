"""
摩洛哥手机号规范化
"""
import re
from typing import Optional

# 国际区号的几种写法，统一改写为本地格式的前导 0
_PHONE_PREFIXES = ("+212", "00212", "212")
_PHONE_NOISE = re.compile(r"[\s\-().]")


def normalize_phone(phone: Optional[str]) -> str:
    """+212 / 00212 / 212 开头的号码改写为 0 开头的本地号码"""
    value = _PHONE_NOISE.sub("", phone or "")
    for prefix in _PHONE_PREFIXES:
        if value.startswith(prefix):
            return "0" + value[len(prefix):]
    return value
