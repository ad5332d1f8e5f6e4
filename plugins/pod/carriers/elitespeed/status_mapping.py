"""
EliteSpeed 状态映射
承运商原始状态（法语为主，混有英语）→ 订单规范状态

按关键词子串匹配（不区分大小写），规则顺序即优先级：
签收 > 退回 > 运输中 > 待派送。一个原始状态可能同时命中多组关键词。
"""
from typing import Any, Optional, Sequence, Tuple

from pod_core.models.orders import OrderStatus

STATUS_RULES: Sequence[Tuple[str, Tuple[str, ...]]] = (
    (OrderStatus.PAID.value, (
        "livré",
        "delivered",
        "payé",
        "paid",
        "vendeur remboursé",
    )),
    (OrderStatus.RETURNED.value, (
        "retour",
        "annul",
        "refus",
        "cancelled",
        "change",
        "échange",
        "echange",
        "manqué",
        "pas de réponse",
        "pas de reponse",
        "hors zone",
        "injoignable",
        "colis non reçu",
        "error colis",
        "colis non change",
        "faux destination",
        "numero_erroné",
    )),
    (OrderStatus.SHIPPED.value, (
        "en cours",
        "expédié",
        "shipped",
        "transit",
        "livraison",
        "en voyage",
        "mise en distribution",
        "reçu par livreur",
    )),
    (OrderStatus.DELIVERING.value, (
        "préparation",
        "ramassage",
        "ramassé",
        "pickup",
        "prêt",
        "réceptionné",
        "en attente",
        "programmé",
        "reporté",
        "interessé",
        "demande de suivi",
        "changement d'adresse",
        "changer livreur",
    )),
)


def match_status(raw_status: Optional[str]) -> Optional[str]:
    """返回命中的规范状态，未命中返回 None"""
    if not raw_status:
        return None
    text = raw_status.lower()
    for canonical, keywords in STATUS_RULES:
        if any(keyword in text for keyword in keywords):
            return canonical
    return None


def classify_status(raw_status: Optional[str], current_status: str) -> str:
    """承运商原始状态 → 规范状态，无法识别时保持当前状态"""
    return match_status(raw_status) or current_status


def _first_event_status(data: Any) -> Optional[str]:
    """data 可能是事件列表（最新在前）或单个事件"""
    if isinstance(data, list):
        if not data:
            return None
        data = data[0]
    if isinstance(data, dict):
        status = data.get("status")
        return str(status) if status else None
    return None


def extract_tracking_status(tracking: Any) -> Optional[str]:
    """
    从查询接口响应中提取原始状态

    依次尝试：statut → last_status → message → data[0].status
    """
    if not isinstance(tracking, dict):
        return None
    for key in ("statut", "last_status", "message"):
        value = tracking.get(key)
        if value:
            return str(value)
    return _first_event_status(tracking.get("data"))


def extract_webhook_status(payload: Any) -> Optional[str]:
    """
    从 Webhook 载荷中提取原始状态

    依次尝试：statut → status → last_status → data[0].status
    """
    if not isinstance(payload, dict):
        return None
    for key in ("statut", "status", "last_status"):
        value = payload.get(key)
        if value:
            return str(value)
    return _first_event_status(payload.get("data"))


def extract_tracking_code(payload: Any) -> Optional[str]:
    """从 Webhook 载荷中提取运单号：code_shippment → tracking_code → code"""
    if not isinstance(payload, dict):
        return None
    for key in ("code_shippment", "tracking_code", "code"):
        value = payload.get(key)
        if value:
            return str(value).strip()
    return None
