"""Excepciones de dominio para el ciclo de vida de reservaciones."""


class DomainError(Exception):
    """Clase base para todos los errores de dominio."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(self.message)


# === Errores de Reservación ===


class ReservationNotFoundError(DomainError):
    """La reservación no existe."""

    def __init__(self, reservation_id: str):
        super().__init__(
            message=f"Reservación no encontrada: {reservation_id}",
            code="RESERVATION_NOT_FOUND",
        )
        self.reservation_id = reservation_id


class AlreadyFinalError(DomainError):
    """La reservación (o su pago) ya está en un estado final."""

    def __init__(self, reservation_id: str, current_status: str, operation: str):
        super().__init__(
            message=f"No se puede {operation} la reservación {reservation_id}: "
            f"estado final '{current_status}'",
            code="ALREADY_FINAL",
        )
        self.reservation_id = reservation_id
        self.current_status = current_status
        self.operation = operation


class InvalidReservationStatusError(DomainError):
    """El estado de la reservación no permite la operación."""

    def __init__(self, current_status: str, expected_status: str | list[str], operation: str):
        expected = expected_status if isinstance(expected_status, str) else ", ".join(expected_status)
        super().__init__(
            message=f"No se puede {operation}: estado actual '{current_status}', esperado '{expected}'",
            code="INVALID_RESERVATION_STATUS",
        )
        self.current_status = current_status
        self.expected_status = expected_status
        self.operation = operation


class ConcurrentModificationError(DomainError):
    """La escritura condicional fue rechazada: el registro cambió desde la última lectura."""

    def __init__(self, reservation_id: str, expected_status: str, actual_status: str | None = None):
        actual = f", estado actual '{actual_status}'" if actual_status else ""
        super().__init__(
            message=f"Conflicto de concurrencia en reservación {reservation_id}: "
            f"estado esperado '{expected_status}'{actual}",
            code="CONCURRENT_MODIFICATION",
        )
        self.reservation_id = reservation_id
        self.expected_status = expected_status
        self.actual_status = actual_status


class ActorNotAllowedError(DomainError):
    """El actor no tiene permitido ejecutar la operación."""

    def __init__(self, actor: str, operation: str):
        super().__init__(
            message=f"El actor '{actor}' no puede {operation}",
            code="ACTOR_NOT_ALLOWED",
        )
        self.actor = actor
        self.operation = operation


# === Errores de Pago ===


class TransactionNotFoundError(DomainError):
    """La transacción de pago no existe."""

    def __init__(self, transaction_id: str):
        super().__init__(
            message=f"Transacción no encontrada: {transaction_id}",
            code="TRANSACTION_NOT_FOUND",
        )
        self.transaction_id = transaction_id


class StaleSessionError(DomainError):
    """El callback de pago pertenece a una sesión reemplazada."""

    def __init__(self, reservation_id: str, session_id: str, current_session_id: str | None):
        super().__init__(
            message=f"Sesión de pago obsoleta para {reservation_id}: "
            f"recibida '{session_id}', vigente '{current_session_id}'",
            code="STALE_SESSION",
        )
        self.reservation_id = reservation_id
        self.session_id = session_id
        self.current_session_id = current_session_id


class PaymentGatewayError(DomainError):
    """Falló la comunicación con el procesador de pagos."""

    def __init__(self, operation: str, detail: str | None = None):
        super().__init__(
            message=f"Error del procesador de pagos en '{operation}': {detail or 'sin detalle'}",
            code="PAYMENT_GATEWAY_ERROR",
        )
        self.operation = operation
        self.detail = detail


# === Errores de Asignación ===


class AlreadyClaimedError(DomainError):
    """Otro conductor ya tomó la reservación, o su estado cambió."""

    def __init__(self, reservation_id: str, holder_driver_id: str | None = None):
        holder = f" por '{holder_driver_id}'" if holder_driver_id else ""
        super().__init__(
            message=f"La reservación {reservation_id} ya fue tomada{holder}",
            code="ALREADY_CLAIMED",
        )
        self.reservation_id = reservation_id
        self.holder_driver_id = holder_driver_id


class NotAssignedError(DomainError):
    """La reservación no está asignada al actor que intenta completarla."""

    def __init__(self, reservation_id: str, actor: str):
        super().__init__(
            message=f"La reservación {reservation_id} no está asignada a '{actor}'",
            code="NOT_ASSIGNED",
        )
        self.reservation_id = reservation_id
        self.actor = actor


# === Errores de Validación ===


class ValidationError(DomainError):
    """Error de validación de datos de entrada."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"Validación fallida en '{field}': {message}",
            code="VALIDATION_ERROR",
        )
        self.field = field


class InvalidMoneyError(DomainError):
    """Monto monetario inválido."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_MONEY")


# === Errores de Recibo ===


class ReceiptNotReadyError(DomainError):
    """El recibo aún no está disponible (reservación no pagada)."""

    def __init__(self, reservation_id: str, payment_status: str):
        super().__init__(
            message=f"Recibo no disponible para {reservation_id}: estado de pago '{payment_status}'",
            code="RECEIPT_NOT_READY",
        )
        self.reservation_id = reservation_id
        self.payment_status = payment_status


class ReceiptGenerationError(DomainError):
    """Falló la generación o el almacenamiento del documento del recibo."""

    def __init__(self, reservation_id: str, detail: str | None = None):
        super().__init__(
            message=f"No se pudo generar el recibo de {reservation_id}: {detail or 'sin detalle'}",
            code="RECEIPT_GENERATION_FAILED",
        )
        self.reservation_id = reservation_id
        self.detail = detail
