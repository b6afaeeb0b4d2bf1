from django.urls import path
from . import views

app_name = "stock"

urlpatterns = [
    path("recipes/", views.RecipeListView.as_view(), name="recipe-list"),
    path("recipes/stats/", views.RecipeStatsView.as_view(), name="recipe-stats"),
    path("recipes/<int:recipe_id>/", views.RecipeDetailView.as_view(), name="recipe-detail"),
    path("recipes/<int:recipe_id>/ingredients/", views.RecipeIngredientsView.as_view(), name="recipe-ingredients"),

    path("purchase-orders/", views.PurchaseOrderListView.as_view(), name="purchase-order-list"),
    path("purchase-orders/stats/", views.PurchaseOrderStatsView.as_view(), name="purchase-order-stats"),
    path("purchase-orders/<int:po_id>/", views.PurchaseOrderDetailView.as_view(), name="purchase-order-detail"),
    path("purchase-orders/<int:po_id>/status/", views.PurchaseOrderStatusView.as_view(), name="purchase-order-status"),
    path("purchase-orders/<int:po_id>/receive/", views.PurchaseOrderReceiveView.as_view(), name="purchase-order-receive"),

    path("stock-lots/", views.StockLotListView.as_view(), name="stock-lot-list"),
    path("stock-lots/alerts/", views.StockLotAlertsView.as_view(), name="stock-lot-alerts"),
    path("stock-lots/<int:lot_id>/", views.StockLotDetailView.as_view(), name="stock-lot-detail"),
    path("stock-lots/<int:lot_id>/consume/", views.StockLotConsumeView.as_view(), name="stock-lot-consume"),
]
