import uuid as uuid_lib

from django.conf import settings
from django.db import models
from django.db.models import F, Q


class Supplier(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.TextField(blank=True, default="")
    vat_number = models.CharField(max_length=50, blank=True, default="")
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Ingredient(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    category = models.CharField(max_length=100, blank=True, default="")
    unit = models.CharField(max_length=20, default="g")
    # Live catalog price. Recipe lines keep their own snapshot.
    cost_per_unit = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Recipe(models.Model):
    class Difficulty(models.TextChoices):
        EASY = "easy", "Easy"
        MEDIUM = "medium", "Medium"
        HARD = "hard", "Hard"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    portion_size = models.DecimalField(max_digits=10, decimal_places=2, default=1)
    preparation_time = models.PositiveIntegerField(default=0, help_text="Minutes")
    cooking_time = models.PositiveIntegerField(default=0, help_text="Minutes")
    difficulty = models.CharField(
        max_length=10, choices=Difficulty.choices, default=Difficulty.MEDIUM
    )
    instructions = models.TextField(blank=True, default="")
    chef_notes = models.TextField(blank=True, default="")

    # Derived: round(sum(quantity * cost_per_unit), 2) over the lines.
    total_cost = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    version = models.PositiveIntegerField(default=1)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-active", "name"]

    def __str__(self):
        return f"{self.name} v{self.version}"


class RecipeIngredient(models.Model):
    recipe = models.ForeignKey(
        Recipe, on_delete=models.CASCADE, related_name="ingredients"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="used_in_recipes"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=20, default="g")
    # Snapshot taken when the line is written, decoupled from Ingredient.cost_per_unit
    cost_per_unit = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    notes = models.TextField(blank=True, default="")
    is_optional = models.BooleanField(default=False)
    preparation_step = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["preparation_step", "id"]

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity}"


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SENT = "sent", "Sent"
        CONFIRMED = "confirmed", "Confirmed"
        DELIVERED = "delivered", "Delivered"
        INVOICED = "invoiced", "Invoiced"
        PAID = "paid", "Paid"
        CANCELLED = "cancelled", "Cancelled"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    order_number = models.CharField(max_length=50, unique=True)
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT
    )
    order_date = models.DateField()
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)

    subtotal = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=15, decimal_places=2, default=0)

    payment_method = models.CharField(max_length=50, blank=True, default="")
    payment_terms = models.CharField(max_length=100, blank=True, default="")
    invoice_number = models.CharField(max_length=100, null=True, blank=True)
    delivery_address = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-order_date", "-created_at"]

    def __str__(self):
        return self.order_number


class PurchaseOrderItem(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="items"
    )
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="+"
    )
    quantity = models.DecimalField(max_digits=15, decimal_places=4)
    unit = models.CharField(max_length=20, default="g")
    unit_price = models.DecimalField(max_digits=15, decimal_places=4)
    # Always quantity * unit_price, recomputed on write
    total_price = models.DecimalField(max_digits=15, decimal_places=2)
    received_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(received_quantity__gte=0) & Q(received_quantity__lte=F("quantity")),
                name="po_item_received_within_ordered",
            ),
        ]

    def __str__(self):
        return f"{self.ingredient.name} × {self.quantity}"


class OrderSequence(models.Model):
    """
    One counter row per prefix and calendar month.
    Incremented under a row lock by SequenceService.
    """

    prefix = models.CharField(max_length=10)
    period = models.CharField(max_length=6, help_text="YYYYMM")
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["prefix", "period"], name="order_sequence_prefix_period"
            ),
        ]

    def __str__(self):
        return f"{self.prefix}-{self.period}: {self.last_value}"


class StockLot(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="stock_lots"
    )
    batch_code = models.CharField(max_length=100, blank=True, default="")
    unit = models.CharField(max_length=20, default="g")
    available_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    reserved_quantity = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    min_threshold = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    max_threshold = models.DecimalField(
        max_digits=15, decimal_places=4, null=True, blank=True
    )
    expiry_date = models.DateField(null=True, blank=True, db_index=True)
    cost_per_unit = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    supplier_name = models.CharField(max_length=200, blank=True, default="")
    location = models.CharField(max_length=100, blank=True, default="")
    purchase_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["expiry_date", "created_at"]

    @property
    def total_value(self):
        return self.available_quantity * self.cost_per_unit

    def __str__(self):
        return f"Lot {self.batch_code or self.pk} – {self.ingredient.name}"


class StockSettings(models.Model):
    """
    Singleton settings table. Use StockSettings.load() to get the instance.
    """

    expiry_alert_days = models.PositiveIntegerField(
        default=7, help_text="Lots expiring within this many days are reported as expiring"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "stock settings"
        verbose_name_plural = "stock settings"

    def save(self, *args, **kwargs):
        # Enforce singleton: always use pk=1
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        obj, _ = cls.objects.get_or_create(
            pk=1,
            defaults={"expiry_alert_days": getattr(settings, "STOCK_EXPIRY_ALERT_DAYS", 7)},
        )
        return obj

    def __str__(self):
        return "Stock Settings"
