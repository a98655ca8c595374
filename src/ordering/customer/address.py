"""Customer shipping addresses, as read by order creation."""

from protean.fields import Identifier, String

from ordering.domain import ordering


@ordering.aggregate
class Address:
    user_id = Identifier(required=True)
    recipient_name = String(required=True, max_length=255)
    phone = String(max_length=50)
    street_address = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    suburb = String(max_length=100)
    city = String(required=True, max_length=100)
    province = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="South Africa")

    def belongs_to(self, user_id):
        return str(self.user_id) == str(user_id)

    def snapshot(self):
        return {
            "recipient_name": self.recipient_name,
            "phone": self.phone,
            "street_address": self.street_address,
            "address_line2": self.address_line2,
            "suburb": self.suburb,
            "city": self.city,
            "province": self.province,
            "postal_code": self.postal_code,
            "country": self.country,
        }
