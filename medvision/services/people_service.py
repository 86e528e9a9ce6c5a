from typing import Union
import logging

from sqlalchemy.orm import Session

from ..core.exceptions import Conflict, NotFound, ValidationFailed
from ..core.permissions import authorize
from ..core.security import Principal, UserRole
from ..models import Doctor, Patient, RefreshToken
from ..repositories import DoctorRepository, PatientRepository
from ..schemas.people import (
    DoctorProfileUpdate, DoctorUpdate, PatientProfileUpdate, PatientUpdate
)

logger = logging.getLogger(__name__)

NOT_FOUND = {
    UserRole.DOCTOR.value: "Médico não encontrado",
    UserRole.PATIENT.value: "Paciente não encontrado",
}


class PeopleService:
    """Admin management of doctors and patients, and self-service profile edits."""

    def __init__(self, db: Session):
        self.db = db
        self.repositories = {
            UserRole.DOCTOR.value: DoctorRepository(db),
            UserRole.PATIENT.value: PatientRepository(db),
        }

    def _repository(self, role: UserRole):
        return self.repositories[UserRole(role).value]

    def list(self, principal: Principal, role: UserRole, page: int = 1, limit: int = 10):
        role = UserRole(role)
        authorize(principal.role, role.value, "list")
        return self._repository(role).list(page=page, limit=limit)

    def get(self, principal: Principal, role: UserRole, account_id: str) -> Union[Doctor, Patient]:
        role = UserRole(role)
        authorize(principal.role, role.value, "read")
        return self._load(role, account_id)

    def update(
        self,
        principal: Principal,
        role: UserRole,
        account_id: str,
        patch: Union[DoctorUpdate, PatientUpdate],
    ) -> Union[Doctor, Patient]:
        role = UserRole(role)
        authorize(principal.role, role.value, "update")
        return self._apply(self._load(role, account_id), patch)

    def delete(self, principal: Principal, role: UserRole, account_id: str) -> None:
        role = UserRole(role)
        authorize(principal.role, role.value, "delete")
        repository = self._repository(role)
        account = self._load(role, account_id)

        if repository.has_appointments(account.id):
            raise Conflict("Não é possível excluir: existem agendamentos vinculados")
        if account.prescriptions:
            raise Conflict("Não é possível excluir: existem receitas vinculadas")

        self.db.query(RefreshToken).filter(
            RefreshToken.subject_id == account.id,
            RefreshToken.role == role,
        ).delete()
        repository.delete(account)
        self.db.commit()
        logger.info(f"{role.value} {account_id} deleted by admin {principal.id}")

    def update_own_profile(
        self,
        principal: Principal,
        patch: Union[DoctorProfileUpdate, PatientProfileUpdate],
    ) -> Union[Doctor, Patient]:
        """Doctors and patients edit their own contact details."""
        return self._apply(principal.entity, patch)

    def _load(self, role: UserRole, account_id: str):
        account = self._repository(role).get(account_id)
        if account is None:
            raise NotFound(NOT_FOUND[role.value])
        return account

    def _apply(self, account, patch):
        changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            raise ValidationFailed("Nenhum campo para atualizar")

        self._repository(UserRole.DOCTOR if isinstance(account, Doctor) else UserRole.PATIENT).update(
            account, changes
        )
        self.db.commit()
        self.db.refresh(account)
        return account
