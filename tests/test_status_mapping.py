"""
EliteSpeed 状态映射测试
"""
import pytest

from plugins.pod.carriers.elitespeed.status_mapping import (
    classify_status, extract_tracking_code, extract_tracking_status,
    extract_webhook_status, match_status
)


@pytest.mark.parametrize(
    "raw_status, expected",
    [
        ("Livré", "PAID"),
        ("LIVRÉ", "PAID"),
        ("Delivered", "PAID"),
        ("Vendeur remboursé", "PAID"),
        ("Retour Client", "RETURNED"),
        ("Annulé", "RETURNED"),
        ("Refusé par le client", "RETURNED"),
        ("Pas de réponse", "RETURNED"),
        ("Hors zone", "RETURNED"),
        ("En cours de livraison", "SHIPPED"),
        ("Expédié", "SHIPPED"),
        ("Mise en distribution", "SHIPPED"),
        ("Reçu par livreur", "SHIPPED"),
        ("Ramassé", "DELIVERING"),
        ("En attente de ramassage", "DELIVERING"),
        ("Programmé", "DELIVERING"),
        ("Reporté", "DELIVERING"),
    ],
)
def test_match_status(raw_status, expected):
    assert match_status(raw_status) == expected


def test_paid_keywords_take_priority():
    # 同时命中 "livré" 与 "retour"
    assert match_status("Livré après retour") == "PAID"


def test_returned_keywords_take_priority_over_transit():
    assert match_status("Retour en cours") == "RETURNED"


def test_address_change_matches_returned_keyword_first():
    # "changement d'adresse" 同时包含 "change"，按优先级归为退回
    assert match_status("Changement d'adresse") == "RETURNED"


@pytest.mark.parametrize("raw_status", [None, "", "Statut XYZ"])
def test_unknown_status_keeps_current(raw_status):
    assert match_status(raw_status) is None
    assert classify_status(raw_status, "PRINTED") == "PRINTED"


@pytest.mark.parametrize(
    "response, expected",
    [
        ({"statut": "Livré", "last_status": "Expédié"}, "Livré"),
        ({"last_status": "Expédié"}, "Expédié"),
        ({"message": "Ramassé"}, "Ramassé"),
        ({"data": [{"status": "Retour"}, {"status": "Expédié"}]}, "Retour"),
        ({"data": {"status": "Programmé"}}, "Programmé"),
        ({"data": []}, None),
        ({}, None),
        ("Livré", None),
        (None, None),
    ],
)
def test_extract_tracking_status(response, expected):
    assert extract_tracking_status(response) == expected


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"statut": "Livré", "status": "other"}, "Livré"),
        ({"status": "Annulé"}, "Annulé"),
        ({"last_status": "Expédié"}, "Expédié"),
        ({"data": [{"status": "Ramassé"}]}, "Ramassé"),
        ({"code": "ES-1"}, None),
    ],
)
def test_extract_webhook_status(payload, expected):
    assert extract_webhook_status(payload) == expected


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"code_shippment": " ES-1 ", "tracking_code": "ES-2"}, "ES-1"),
        ({"tracking_code": "ES-2", "code": "ES-3"}, "ES-2"),
        ({"code": 12345}, "12345"),
        ({"statut": "Livré"}, None),
        ([], None),
    ],
)
def test_extract_tracking_code(payload, expected):
    assert extract_tracking_code(payload) == expected
