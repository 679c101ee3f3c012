"""
Balance alert endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import get_banking_system
from .schemas import ThresholdRequest, alert_to_dict
from ..system import BankingSystem


router = APIRouter()


@router.put("/thresholds/{account_number}")
def set_threshold(
    account_number: str,
    request: ThresholdRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Set the low-balance threshold; the account is re-checked immediately"""
    alerts = system.alert_monitor.set_threshold(account_number, request.threshold)
    return {
        "account_number": account_number,
        "threshold": str(system.alert_monitor.get_threshold(account_number)),
        "alerts": [alert_to_dict(a) for a in alerts]
    }


@router.get("/thresholds/{account_number}")
def get_threshold(account_number: str, system: BankingSystem = Depends(get_banking_system)):
    system.account_store.get_account(account_number)
    return {
        "account_number": account_number,
        "threshold": str(system.alert_monitor.get_threshold(account_number))
    }


@router.post("/check")
def check_all(system: BankingSystem = Depends(get_banking_system)):
    """Run a balance check now instead of waiting for the timer"""
    alerts = system.alert_monitor.check_all()
    return {"alerts": [alert_to_dict(a) for a in alerts]}


@router.get("")
def recent_alerts(account_number: Optional[str] = None, system: BankingSystem = Depends(get_banking_system)):
    alerts = system.alert_monitor.recent_alerts(account_number)
    return {"alerts": [alert_to_dict(a) for a in alerts]}
