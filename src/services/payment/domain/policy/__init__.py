from .refund_policy import FEE_RATE as FEE_RATE
from .refund_policy import REFUND_RATE as REFUND_RATE
from .refund_policy import RefundSplit as RefundSplit
from .refund_policy import compute_refund_split as compute_refund_split
