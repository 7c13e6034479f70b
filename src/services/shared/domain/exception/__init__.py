from .exceptions import (
    BusinessRuleViolationException as BusinessRuleViolationException,
)
from .exceptions import DomainException as DomainException
from .exceptions import (
    DuplicateResourceException as DuplicateResourceException,
)
from .exceptions import GatewayException as GatewayException
from .exceptions import GatewayRejectedException as GatewayRejectedException
from .exceptions import GatewayTransientException as GatewayTransientException
from .exceptions import InvalidAmountException as InvalidAmountException
from .exceptions import NotCancellableException as NotCancellableException
from .exceptions import OptimisticLockException as OptimisticLockException
from .exceptions import (
    PersistenceFailedException as PersistenceFailedException,
)
from .exceptions import (
    ResourceNotFoundException as ResourceNotFoundException,
)
from .exceptions import UnauthorizedException as UnauthorizedException
