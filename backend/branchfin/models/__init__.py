from .branches import Branch
from .auth import Profile, SessionToken, ManagerBranchAssignment
from .financials import FinancialRecord, ChangeRequest, FinancialLog
from .security import SecurityEvent

__all__ = [
    'Branch',
    'Profile', 'SessionToken', 'ManagerBranchAssignment',
    'FinancialRecord', 'ChangeRequest', 'FinancialLog',
    'SecurityEvent',
]
