"""
Tests de los modelos pydantic (formas JSON del backend)
"""

from datetime import date

from homefit.models import (
    Apartment,
    Inquiry,
    Location,
    LocationPreference,
    MatchFilters,
    MatchPage,
    PreferenceRequest,
    ProfileUpdate,
    Tour,
    TourRequest,
    User,
    UserRole,
)

from conftest import apartment_data, make_user


class TestUser:
    def test_parses_backend_aliases(self):
        user = User.model_validate({
            "_id": "abc",
            "email": "b@example.com",
            "fullName": "Bea Broker",
            "type": "broker",
            "isApproved": True,
            "licenseNumber": "LIC-1",
        })

        assert user.id == "abc"
        assert user.role == UserRole.BROKER
        assert user.is_broker
        assert user.is_approved
        assert user.license_number == "LIC-1"

    def test_role_defaults_to_user(self):
        user = User.model_validate({"_id": "1", "email": "x@example.com"})
        assert user.role == UserRole.USER
        assert user.is_approved is False

    def test_display_name_falls_back_to_email(self):
        assert make_user(fullName=None).display_name == "user@example.com"

    def test_merge_accepts_aliases_and_ignores_unknown_fields(self):
        user = make_user("broker")
        merged = user.merge(isApproved=True, phone="123", unknownField="x")

        assert merged.is_approved is True
        assert merged.phone == "123"
        assert merged.id == user.id
        # El original no se muta
        assert user.is_approved is False


class TestApartment:
    def test_numeric_bedrooms_are_coerced_to_text(self):
        apartment = Apartment.model_validate(apartment_data(bedrooms=3, bathrooms=2))
        assert apartment.bedrooms == "3"
        assert apartment.bathrooms == "2"

    def test_null_lists_become_empty(self):
        apartment = Apartment.model_validate(apartment_data(imageUrls=None, amenities=None))
        assert apartment.image_urls == []
        assert apartment.amenities == []

    def test_display_title_without_title(self):
        apartment = Apartment.model_validate(apartment_data(title=None))
        assert apartment.display_title == "2 BR in Downtown"

    def test_price_text(self):
        assert Apartment.model_validate(apartment_data(price=2500)).price_text == "$2,500/month"
        assert Apartment.model_validate(apartment_data(price=None)).price_text == "price not available"

    def test_geojson_location(self):
        apartment = Apartment.model_validate(apartment_data(location={
            "type": "Point", "coordinates": [-71.06, 42.36], "address": "1 Main St",
        }))
        assert apartment.location == Location(type="Point", coordinates=[-71.06, 42.36], address="1 Main St")
        assert apartment.address == "1 Main St"

    def test_plain_text_location(self):
        apartment = Apartment.model_validate(apartment_data(location="123 Main St"))
        assert apartment.location.coordinates is None
        assert apartment.address == "123 Main St"

    def test_missing_location(self):
        assert Apartment.model_validate(apartment_data(location="  ")).location is None
        assert Apartment.model_validate(apartment_data(location=None)).address == ""


class TestMatchPage:
    def test_filtered_count_defaults_to_total(self):
        page = MatchPage.model_validate({"results": [], "totalCount": 12})
        assert page.total_count == 12
        assert page.filtered_count == 12

    def test_missing_results(self):
        page = MatchPage.model_validate({"results": None})
        assert page.results == []
        assert page.total_count == 0

    def test_non_numeric_score_becomes_zero(self):
        page = MatchPage.model_validate({
            "results": [{"apartment": apartment_data(), "matchScore": "n/a"}],
            "totalCount": 1,
        })
        assert page.results[0].match_score == 0.0


class TestMatchFilters:
    def test_defaults_produce_no_params(self):
        assert MatchFilters.defaults().to_query_params() == {}
        assert MatchFilters.defaults().is_default()

    def test_query_params_join_facets(self):
        filters = MatchFilters(
            price_range=(1500, 2500),
            bedrooms=["1", "2"],
            amenities=["Gym", "Pool"],
        )

        assert filters.to_query_params() == {
            "minPrice": "1500",
            "maxPrice": "2500",
            "bedrooms": "1,2",
            "amenities": "Gym,Pool",
        }
        assert filters.active_count == 5


class TestRequests:
    def test_tour_request_serializes_date(self):
        request = TourRequest(
            apartment_id="apt1",
            name="Rita",
            contact_number="555",
            tour_date=date(2026, 3, 5),
            tour_time="09:00 AM - 10:00 AM",
        )

        assert request.to_api_dict() == {
            "apartmentId": "apt1",
            "name": "Rita",
            "contactNumber": "555",
            "tourDate": "2026-03-05",
            "tourTime": "09:00 AM - 10:00 AM",
            "message": "",
        }

    def test_preference_request_defaults(self):
        request = PreferenceRequest(
            move_in_date=date(2026, 6, 1),
            location_preference=LocationPreference(address="Back Bay"),
        )

        assert request.to_api_dict() == {
            "type": "Rent",
            "bedrooms": "1",
            "priceRange": "$1,000-$2,000",
            "style": "Modern",
            "moveInDate": "2026-06-01",
            "parking": "Yes",
            "transport": "Close",
            "amenities": [],
            "locationPreference": {"address": "Back Bay", "radius": 5},
        }

    def test_profile_update_skips_unset_fields(self):
        assert ProfileUpdate(bio="Hi").to_api_dict() == {"bio": "Hi"}

    def test_tour_with_unpopulated_apartment(self):
        tour = Tour.model_validate({
            "_id": "t1",
            "apartmentId": "64f0c0ffee",
            "tourDate": "2026-03-05T00:00:00.000Z",
        })
        assert tour.apartment is None
        assert tour.date_text == "2026-03-05"

    def test_inquiry_with_populated_apartment(self):
        inquiry = Inquiry.model_validate({
            "_id": "i1",
            "apartmentId": apartment_data("apt9"),
            "message": "Is it available?",
        })
        assert inquiry.apartment.id == "apt9"
        assert inquiry.status == "pending"
