import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory
from inventory.models import InventoryRecord, Location, StockItem


class UserFactory(DjangoModelFactory):
    class Meta:
        model = get_user_model()

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.Faker("email")
    password = factory.PostGenerationMethodCall("set_password", "pass")


class StaffUserFactory(UserFactory):
    is_staff = True


class LocationFactory(DjangoModelFactory):
    class Meta:
        model = Location
        django_get_or_create = ("code",)

    code = factory.Sequence(lambda n: f"L{n}")
    name = factory.LazyAttribute(lambda o: f"Bin {o.code}")
    zone = "A"
    level = 1
    section = 1
    capacity = 1000


class StockItemFactory(DjangoModelFactory):
    class Meta:
        model = StockItem

    product = factory.SubFactory("catalog.tests.factories.ProductFactory")
    quantity = 0
    location_quantities = factory.LazyFunction(dict)
    primary_location = ""


class InventoryRecordFactory(DjangoModelFactory):
    class Meta:
        model = InventoryRecord

    stock_item = factory.SubFactory(StockItemFactory)
    location = factory.SubFactory(LocationFactory)
    lot = ""
    quantity = 0
