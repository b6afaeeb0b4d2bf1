import json
import logging

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from stock.services import (
    ValidationError, NotFoundError, ConflictError, InsufficientStockError, PersistenceError,
    to_int,
    RecipeService,
    PurchaseOrderService,
    StockLotService,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ValidationError):
        return error_response(str(e), "validation_error", 400, {"field": e.field, **e.details})
    elif isinstance(e, NotFoundError):
        return error_response(str(e), "not_found", 404, e.details)
    elif isinstance(e, InsufficientStockError):
        return error_response(str(e), "insufficient_stock", 409, e.details)
    elif isinstance(e, ConflictError):
        return error_response(str(e), "conflict", 409, e.details)
    elif isinstance(e, PersistenceError):
        return error_response("The database is unavailable, nothing was saved", "persistence_error", 503)
    else:
        logger.exception("Unhandled error in stock API")
        return error_response("Internal server error", "server_error", 500)


def query_bool(value):
    if value is None or value == "":
        return None
    return value.lower() in ("1", "true", "yes")


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        return super().dispatch(request, *args, **kwargs)

    def get_json_body(self, request):
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            raise ValidationError("Request body is not valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def check_fields(self, data: dict, allowed, resource: str):
        unknown = set(data) - set(allowed)
        if unknown:
            raise ValidationError(f"Unknown {resource} fields: {', '.join(sorted(unknown))}")

    def get_page(self, request):
        return (
            to_int(request.GET.get("page"), "page", 1),
            to_int(request.GET.get("per_page"), "per_page", 20),
        )

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== RECIPES ====================

class RecipeListView(BaseStockView):

    def get(self, request):
        try:
            page, per_page = self.get_page(request)
            result = RecipeService.list(
                page=page,
                per_page=per_page,
                search=request.GET.get("search"),
                difficulty=request.GET.get("difficulty"),
                active=query_bool(request.GET.get("active")),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            self.check_fields(data, RecipeService.create_fields, "recipe")
            result = RecipeService.create(
                name=data.get("name"),
                ingredients=data.get("ingredients"),
                **{k: v for k, v in data.items() if k not in ("name", "ingredients")}
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class RecipeDetailView(BaseStockView):

    def get(self, request, recipe_id):
        try:
            result = RecipeService.get(recipe_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, recipe_id):
        try:
            data = self.get_json_body(request)
            result = RecipeService.update(recipe_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, recipe_id):
        try:
            result = RecipeService.delete(recipe_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class RecipeIngredientsView(BaseStockView):

    def put(self, request, recipe_id):
        try:
            data = self.get_json_body(request)
            result = RecipeService.replace_ingredients(
                recipe_id,
                ingredients=data.get("ingredients"),
                expected_version=data.get("expected_version"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class RecipeStatsView(BaseStockView):

    def get(self, request):
        try:
            return self.success(RecipeService.get_stats())
        except Exception as e:
            return handle_service_error(e)


# ==================== PURCHASE ORDERS ====================

class PurchaseOrderListView(BaseStockView):

    def get(self, request):
        try:
            page, per_page = self.get_page(request)
            result = PurchaseOrderService.list(
                page=page,
                per_page=per_page,
                search=request.GET.get("search"),
                supplier_id=to_int(request.GET.get("supplier_id"), "supplier_id"),
                status=request.GET.get("status"),
                date_from=request.GET.get("from_date"),
                date_to=request.GET.get("to_date"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            self.check_fields(data, PurchaseOrderService.create_fields, "purchase order")
            result = PurchaseOrderService.create(
                supplier_id=data.get("supplier_id"),
                order_date=data.get("order_date"),
                items=data.get("items"),
                **{k: v for k, v in data.items() if k not in ("supplier_id", "order_date", "items")}
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderDetailView(BaseStockView):

    def get(self, request, po_id):
        try:
            result = PurchaseOrderService.get(po_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, po_id):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.update(po_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, po_id):
        try:
            result = PurchaseOrderService.delete(po_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderStatusView(BaseStockView):

    def post(self, request, po_id):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.transition_status(
                po_id,
                new_status=data.get("status"),
                actual_delivery_date=data.get("actual_delivery_date"),
                invoice_number=data.get("invoice_number"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderReceiveView(BaseStockView):

    def post(self, request, po_id):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.record_receipt(po_id, data.get("received"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderStatsView(BaseStockView):

    def get(self, request):
        try:
            return self.success(PurchaseOrderService.get_stats())
        except Exception as e:
            return handle_service_error(e)


# ==================== STOCK LOTS ====================

class StockLotListView(BaseStockView):

    def get(self, request):
        try:
            result = StockLotService.list(
                search=request.GET.get("search"),
                ingredient_id=to_int(request.GET.get("ingredient_id"), "ingredient_id"),
                status=request.GET.get("status"),
                location=request.GET.get("location"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            self.check_fields(data, StockLotService.receive_fields, "stock lot")
            result = StockLotService.receive(
                ingredient_id=data.get("ingredient_id"),
                quantity=data.get("quantity"),
                **{k: v for k, v in data.items() if k not in ("ingredient_id", "quantity")}
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class StockLotAlertsView(BaseStockView):

    def get(self, request):
        try:
            return self.success(StockLotService.get_alerts())
        except Exception as e:
            return handle_service_error(e)


class StockLotDetailView(BaseStockView):

    def get(self, request, lot_id):
        try:
            result = StockLotService.get(lot_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, lot_id):
        try:
            data = self.get_json_body(request)
            result = StockLotService.update(lot_id, **data)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, lot_id):
        try:
            result = StockLotService.delete(lot_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class StockLotConsumeView(BaseStockView):

    def post(self, request, lot_id):
        try:
            data = self.get_json_body(request)
            result = StockLotService.consume(lot_id, data.get("quantity"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)
