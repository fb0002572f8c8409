"""JSON-RPC dispatcher for the Payme merchant API callback."""
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .errors import (
    InsufficientPrivilegeError,
    InternalError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    PaymeError,
)
from .ledger import TransactionLedger
from .merchant import MerchantAuthenticator
from .schemas import (
    CancelTransactionParams,
    CheckPerformTransactionParams,
    CheckTransactionParams,
    CreateTransactionParams,
    GetStatementParams,
    PerformTransactionParams,
)
from .statement import StatementExporter

logger = logging.getLogger(__name__)


class PaymeMethod(str, Enum):
    """Methods Payme invokes on the merchant."""
    CHECK_PERFORM_TRANSACTION = "CheckPerformTransaction"
    CREATE_TRANSACTION = "CreateTransaction"
    PERFORM_TRANSACTION = "PerformTransaction"
    CANCEL_TRANSACTION = "CancelTransaction"
    CHECK_TRANSACTION = "CheckTransaction"
    GET_STATEMENT = "GetStatement"


Handler = Callable[[Any], Awaitable[BaseModel]]


class ProtocolDispatcher:
    """
    Turns a raw callback request into a Payme RPC response body.

    Every request is authenticated first, then decoded, then routed
    through a table keyed by ``PaymeMethod`` with a params model per
    method. Errors never escape: business errors become RPC error
    bodies with their Payme code, anything unexpected becomes the
    generic system error.
    """

    def __init__(
        self,
        authenticator: MerchantAuthenticator,
        ledger: TransactionLedger,
        statements: StatementExporter,
        account_field: str = "order_id",
    ):
        self.authenticator = authenticator
        self.ledger = ledger
        self.statements = statements
        self.account_field = account_field

        self.routes: Dict[PaymeMethod, Tuple[Type[BaseModel], Handler]] = {
            PaymeMethod.CHECK_PERFORM_TRANSACTION: (
                CheckPerformTransactionParams, self._check_perform_transaction
            ),
            PaymeMethod.CREATE_TRANSACTION: (CreateTransactionParams, self._create_transaction),
            PaymeMethod.PERFORM_TRANSACTION: (PerformTransactionParams, self._perform_transaction),
            PaymeMethod.CANCEL_TRANSACTION: (CancelTransactionParams, self._cancel_transaction),
            PaymeMethod.CHECK_TRANSACTION: (CheckTransactionParams, self._check_transaction),
            PaymeMethod.GET_STATEMENT: (GetStatementParams, self._get_statement),
        }

        unrouted = set(PaymeMethod) - set(self.routes)
        if unrouted:
            raise RuntimeError(f"No handler for Payme methods: {sorted(m.value for m in unrouted)}")

    async def dispatch(self, body: bytes, authorization: Optional[str]) -> Dict[str, Any]:
        """
        Handle one callback request.

        Args:
            body: Raw request body
            authorization: Value of the Authorization header, if any

        Returns:
            ``{"result": ...}`` or ``{"error": {...}}``, plus the request id
        """
        request_id = None
        method_name = None

        try:
            if not self.authenticator.is_authorized(authorization):
                raise InsufficientPrivilegeError()

            payload = self._decode(body)
            request_id = payload.get("id")
            method_name = payload.get("method")
            logger.info(f"Payme request {method_name} (id={request_id})")
            logger.debug(f"Payme request payload: {payload}")

            params_model, handler = self.routes[self._resolve(method_name)]
            params = self._validate(params_model, payload.get("params"))
            result = await handler(params)
            response: Dict[str, Any] = {"result": result.model_dump()}

        except PaymeError as e:
            logger.info(f"Payme {method_name or 'request'} rejected: {e.code.name} {e.message}")
            response = {"error": e.to_dict()}

        except Exception as e:
            logger.error(f"Error handling Payme {method_name or 'request'}: {str(e)}", exc_info=True)
            response = {"error": InternalError().to_dict()}

        if request_id is not None:
            response["id"] = request_id

        logger.debug(f"Payme response: {response}")
        return response

    @staticmethod
    def _decode(body: bytes) -> Dict[str, Any]:
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, ValueError):
            raise ParseError()
        if not isinstance(payload, dict):
            raise ParseError("Request body must be a JSON object")
        return payload

    @staticmethod
    def _resolve(method_name: Any) -> PaymeMethod:
        try:
            return PaymeMethod(method_name)
        except (TypeError, ValueError):
            raise MethodNotFoundError(data=str(method_name) if method_name is not None else None)

    @staticmethod
    def _validate(params_model: Type[BaseModel], params: Any) -> BaseModel:
        if not isinstance(params, dict):
            raise InvalidRequestError("Request params must be an object", data="params")
        try:
            return params_model.model_validate(params)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise InvalidRequestError(f"Invalid params: {field}: {first['msg']}", data=field)

    def _order_ref(self, account: Dict[str, Any]) -> Any:
        if self.account_field not in account:
            raise InvalidRequestError(
                f"Account field {self.account_field!r} is required", data=self.account_field
            )
        return account[self.account_field]

    # Handlers
    async def _check_perform_transaction(self, params: CheckPerformTransactionParams):
        return await self.ledger.check_perform_transaction(
            self._order_ref(params.account), params.amount
        )

    async def _create_transaction(self, params: CreateTransactionParams):
        return await self.ledger.create_transaction(
            order_ref=self._order_ref(params.account),
            payme_id=params.id,
            payme_time=params.time,
            amount=params.amount,
            account=params.account,
        )

    async def _perform_transaction(self, params: PerformTransactionParams):
        return await self.ledger.perform_transaction(params.id)

    async def _cancel_transaction(self, params: CancelTransactionParams):
        return await self.ledger.cancel_transaction(params.id, params.reason)

    async def _check_transaction(self, params: CheckTransactionParams):
        return await self.ledger.check_transaction(params.id)

    async def _get_statement(self, params: GetStatementParams):
        return await self.statements.get_statement(params.from_time, params.to_time)
