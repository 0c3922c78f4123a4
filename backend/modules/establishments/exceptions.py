# backend/modules/establishments/exceptions.py

from core.exceptions import NotFoundError


class EstablishmentNotFoundError(NotFoundError):
    """Raised when an establishment id does not resolve to a listing"""

    def __init__(self, establishment_id):
        self.establishment_id = establishment_id
        super().__init__(
            detail=f"Establishment {establishment_id} not found",
            error_code="ESTABLISHMENT_NOT_FOUND",
            details={"establishment_id": str(establishment_id)},
        )
