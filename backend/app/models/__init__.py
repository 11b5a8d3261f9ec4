from .orders import Order
from .payouts import Payout, PayoutLine
from .debts import Debt, DebtPayment, Expense
from .auth import User, SessionToken

__all__ = [
    'Order',
    'Payout', 'PayoutLine',
    'Debt', 'DebtPayment', 'Expense',
    'User', 'SessionToken',
]
