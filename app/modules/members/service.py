"""
Servicios de negocio para socios y cuenta corriente de cuotas

- MemberService: alta y consulta de socios y de cargos
- DuesLedgerService: generación de cuotas, cobro, vencimientos y saldos
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from decimal import Decimal
from typing import List, Dict, Any
import logging
import secrets
import string
import time

from app.core.config import settings
from app.common.dates import local_today
from app.modules.auth.schemas import AuthContext
from app.modules.batches.models import DetailType
from app.modules.cash_movements.mirror import LedgerMirror
from app.modules.cash_movements.models import MovementType
from app.modules.members.models import (
    Member, ChargeTemplate, MemberDuesEntry, Payment, EntryType, EntryStatus
)
from app.modules.members.schemas import (
    MemberCreate, MemberUpdate, ChargeTemplateCreate, GenerateChargesRequest, ProcessPaymentRequest
)
from app.modules.treasury.service import TreasuryService

logger = logging.getLogger(__name__)

PAYMENT_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_payment_id() -> str:
    """PAG-<últimos 8 dígitos del timestamp en ms>-<4 alfanuméricos>"""
    timestamp = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(PAYMENT_ID_ALPHABET) for _ in range(4))
    return f"PAG-{timestamp}-{suffix}"


class MemberService:
    """Servicio para socios y cargos"""

    def __init__(self, db: Session):
        self.db = db

    def list_members(self) -> List[Member]:
        return self.db.query(Member).order_by(Member.razon_social).all()

    def get_member(self, member_id: int) -> Member:
        member = self.db.query(Member).filter(Member.id == member_id).first()
        if not member:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Socio no encontrado"
            )
        return member

    def create_member(self, data: MemberCreate) -> Member:
        """
        Crear socio.

        Raises:
            HTTPException 400: CUIT o email ya registrados
        """
        if self.db.query(Member).filter(Member.cuit == data.cuit).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ya existe un socio con ese CUIT"
            )
        if self.db.query(Member).filter(Member.mail == data.mail).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ya existe un socio con ese email"
            )

        values = data.model_dump()
        values["fecha_alta"] = data.fecha_alta or local_today()
        member = Member(**values)

        try:
            self.db.add(member)
            self.db.commit()
            self.db.refresh(member)
            logger.info(f"Socio {member.id} creado ({member.cuit})")
            return member
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Ya existe un socio con ese CUIT o email"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando socio: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creando el socio"
            )

    def update_member(self, member_id: int, data: MemberUpdate) -> Member:
        member = self.get_member(member_id)
        changes = data.model_dump(exclude_unset=True)

        if "mail" in changes and changes["mail"] != member.mail:
            duplicate = self.db.query(Member).filter(
                Member.mail == changes["mail"],
                Member.id != member_id
            ).first()
            if duplicate:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Ya existe un socio con ese email"
                )

        for field, value in changes.items():
            setattr(member, field, value)

        try:
            self.db.commit()
            self.db.refresh(member)
            return member
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Error de integridad en base de datos"
            )

    def list_charge_templates(self, only_active: bool = True) -> List[ChargeTemplate]:
        query = self.db.query(ChargeTemplate)
        if only_active:
            query = query.filter(ChargeTemplate.activo == True)
        return query.order_by(ChargeTemplate.nombre).all()

    def create_charge_template(self, data: ChargeTemplateCreate) -> ChargeTemplate:
        template = ChargeTemplate(**data.model_dump(), activo=True)
        try:
            self.db.add(template)
            self.db.commit()
            self.db.refresh(template)
            return template
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando cargo: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error creando el cargo"
            )


class DuesLedgerService:
    """Servicio para la cuenta corriente de cuotas de los socios"""

    def __init__(self, db: Session):
        self.db = db
        self.mirror = LedgerMirror(db)
        self.treasury = TreasuryService(db)

    def recompute_balances(self, member_id: int) -> None:
        """
        Recalcular saldo_acumulado de todas las líneas del socio desde cero,
        en orden (fecha, id). No hace commit.
        """
        entries = self.db.query(MemberDuesEntry).filter(
            MemberDuesEntry.fk_id_socio == member_id
        ).order_by(MemberDuesEntry.fecha, MemberDuesEntry.id).all()

        running = Decimal("0")
        for entry in entries:
            amount = Decimal(entry.monto or 0)
            if entry.tipo == EntryType.CARGO.value:
                running += amount
            else:
                running -= amount
            entry.saldo_acumulado = running

    def generate_charges(self, data: GenerateChargesRequest) -> Dict[str, Any]:
        """
        Generar una cuota del cargo indicado para cada socio.

        Las cuotas con vencimiento anterior a hoy nacen Vencidas.
        """
        if not data.member_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Se requiere al menos un ID de socio"
            )

        template = self.db.query(ChargeTemplate).filter(
            ChargeTemplate.id == data.cargo_id,
            ChargeTemplate.activo == True
        ).first()
        if not template:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cargo no encontrado o inactivo"
            )

        members = self.db.query(Member).filter(Member.id.in_(data.member_ids)).all()
        if not members:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No se encontraron socios válidos"
            )

        today = local_today()
        fecha = data.fecha or today
        initial_status = EntryStatus.PENDIENTE.value
        if data.fecha_vencimiento and data.fecha_vencimiento < today:
            initial_status = EntryStatus.VENCIDA.value

        amount = Decimal(template.monto or 0)

        try:
            for member in members:
                self.db.add(MemberDuesEntry(
                    fk_id_socio=member.id,
                    fecha=fecha,
                    tipo=EntryType.CARGO.value,
                    concepto=template.nombre,
                    monto=amount,
                    saldo=amount,
                    estado=initial_status,
                    fecha_vencimiento=data.fecha_vencimiento,
                    fk_id_cargo=template.id
                ))
            self.db.flush()

            for member in members:
                self.recompute_balances(member.id)

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error generando cuotas del cargo {template.id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al generar las cuotas"
            )

        count = len(members)
        overdue = count if initial_status == EntryStatus.VENCIDA.value else 0
        pending = count - overdue

        message = f"Se generaron {count} cuotas correctamente"
        if overdue:
            message += f". Nota: {overdue} cuotas se marcaron como vencidas por fecha de vencimiento pasada."

        logger.info(f"Cargo {template.id}: {count} cuotas generadas ({overdue} vencidas)")
        return {"count": count, "vencidas": overdue, "pendientes": pending, "message": message}

    def process_payment(self, data: ProcessPaymentRequest, auth_context: AuthContext) -> Dict[str, Any]:
        """
        Cobrar (total o parcialmente) una cuota.

        1. Alta del pago
        2. Actualización del saldo de la cuota y alta de la línea de Pago;
           si falla se elimina el pago
        3. Ingreso en movimientos_caja (no revierte el pago si falla)
        4. Reflejo en el lote abierto del usuario (no revierte el pago si falla)
        """
        batch = self.mirror.find_open_batch(auth_context.user_id)
        if not batch:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Debe abrir una caja antes de registrar pagos"
            )

        self.treasury.require_active_account(data.cuenta_id)
        self.treasury.require_active_account(data.cuenta_destino_id)

        entry = self._lock_entry(data.movement_id, data.socio_id)
        if entry.estado == EntryStatus.COBRADA.value:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Esta cuota ya está cobrada"
            )
        if data.amount > Decimal(entry.saldo):
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto a pagar no puede ser mayor al saldo pendiente"
            )

        concept = entry.concepto
        today = local_today()

        # 1. Pago
        payment = Payment(
            id=generate_payment_id(),
            fk_id_socio=data.socio_id,
            fecha=today,
            monto=data.amount,
            fk_id_movimiento=entry.id,
            fk_id_cuenta_tesoreria=data.cuenta_id,
            referencia=data.reference
        )
        try:
            self.db.add(payment)
            self.db.commit()
            self.db.refresh(payment)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registrando pago de la cuota {data.movement_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al registrar el pago"
            )

        payment_id = payment.id

        # 2. Saldo de la cuota y cuenta corriente
        try:
            entry = self._lock_entry(data.movement_id, data.socio_id)
            previous_balance = Decimal(entry.saldo)
            new_balance = previous_balance - data.amount
            if new_balance < 0:
                raise ValueError("saldo insuficiente por un pago concurrente")

            entry.saldo = new_balance
            if new_balance <= 0:
                entry.estado = EntryStatus.COBRADA.value

            self.db.add(MemberDuesEntry(
                fk_id_socio=data.socio_id,
                fecha=today,
                tipo=EntryType.PAGO.value,
                concepto=f"Pago de cuota - {concept}",
                monto=data.amount,
                saldo=0,
                estado=EntryStatus.COBRADA.value,
                fk_id_cargo=entry.fk_id_cargo,
                fk_id_pago=payment_id
            ))
            self.db.flush()
            self.recompute_balances(data.socio_id)
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            self._delete_payment(payment_id)
            raise
        except ValueError:
            self.db.rollback()
            self._delete_payment(payment_id)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto a pagar no puede ser mayor al saldo pendiente"
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error actualizando saldo de la cuota {data.movement_id}: {e}")
            self._delete_payment(payment_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al actualizar el saldo de la cuota"
            )

        # 3. Libro de caja
        member = self.db.query(Member).filter(Member.id == data.socio_id).first()
        movement = self.mirror.post_cash_movement(
            fk_id_cuenta=data.cuenta_destino_id,
            fecha=today,
            concepto_ingreso=f"Pago de cuota - {concept}",
            apellido_nombres=member.razon_social if member else None,
            numero_comprobante=data.reference,
            nota=f"Pago procesado por {auth_context.nombre}",
            fk_id_concepto=settings.DUES_PAYMENT_CONCEPT_ID,
            tipo=MovementType.INGRESO.value,
            ingresos=data.amount,
            observaciones=f"Pago de cuota movimiento {data.movement_id}",
            fk_id_usuario=auth_context.user_id
        )

        # 4. Lote abierto
        notes = f"Pago procesado desde módulo de cuotas - Movimiento: {data.movement_id}"
        if data.reference:
            notes += f" - Ref: {data.reference}"
        self.mirror.mirror_to_batch(
            batch_id=batch.id_lote,
            account_id=data.cuenta_destino_id,
            tipo=DetailType.INGRESO.value,
            monto=data.amount,
            concepto=f"Pago de cuota - {concept}",
            observaciones=notes,
            movement_id=movement.id if movement else None
        )

        is_full = new_balance <= 0
        if is_full:
            message = "Pago total procesado exitosamente. La cuota ha sido marcada como COBRADA."
        else:
            message = f"Pago parcial procesado exitosamente. Saldo restante: ${new_balance}"

        logger.info(f"Pago {payment.id} de {data.amount} sobre cuota {data.movement_id}")
        return {
            "pago": payment,
            "tipo_pago": "total" if is_full else "parcial",
            "saldo_anterior": previous_balance,
            "monto_pagado": data.amount,
            "saldo_restante": new_balance,
            "message": message,
        }

    def _lock_entry(self, entry_id: int, member_id: int) -> MemberDuesEntry:
        entry = self.db.query(MemberDuesEntry).filter(
            MemberDuesEntry.id == entry_id,
            MemberDuesEntry.fk_id_socio == member_id,
            MemberDuesEntry.tipo == EntryType.CARGO.value
        ).with_for_update().first()
        if not entry:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No se encontró el movimiento especificado"
            )
        return entry

    def _delete_payment(self, payment_id: str) -> None:
        try:
            self.db.query(Payment).filter(Payment.id == payment_id).delete(synchronize_session=False)
            self.db.commit()
            logger.warning(f"Pago {payment_id} eliminado")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.critical(f"No se pudo eliminar el pago {payment_id}; requiere corrección manual: {e}")

    def mark_overdue(self) -> int:
        """Pasar a Vencida las cuotas pendientes con vencimiento anterior a hoy."""
        today = local_today()
        try:
            updated = self.db.query(MemberDuesEntry).filter(
                MemberDuesEntry.tipo == EntryType.CARGO.value,
                MemberDuesEntry.estado == EntryStatus.PENDIENTE.value,
                MemberDuesEntry.fecha_vencimiento.isnot(None),
                MemberDuesEntry.fecha_vencimiento < today
            ).update({MemberDuesEntry.estado: EntryStatus.VENCIDA.value}, synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error al actualizar cuotas vencidas: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al actualizar cuotas vencidas"
            )
        logger.info(f"{updated} cuotas marcadas como vencidas")
        return updated

    def statement(self, member_id: int) -> List[MemberDuesEntry]:
        """Cuenta corriente del socio, de la línea más antigua a la más reciente."""
        MemberService(self.db).get_member(member_id)
        return self.db.query(MemberDuesEntry).filter(
            MemberDuesEntry.fk_id_socio == member_id
        ).order_by(MemberDuesEntry.fecha, MemberDuesEntry.id).all()
