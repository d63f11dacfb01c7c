"""
Demo fixtures.

``create_demo_data`` wipes the marketplace and loads a small, consistent data
set: six ``@demo.com`` accounts (password ``demo123``, one admin), a handful of
listings, a delivered / shipped / processing order each, reviews on the
delivered order, wishlists and a ledger whose rows add up to each balance.
"""
import logging
from datetime import timedelta
from sqlalchemy.orm import Session

from rewear.models import (
    Item,
    ItemCategory,
    ItemCondition,
    ItemFlag,
    ItemImage,
    ItemLike,
    ItemSize,
    ItemStatus,
    Order,
    OrderEvent,
    OrderStatus,
    PaymentMethod,
    PointTransaction,
    PointTransactionType,
    Review,
    ReviewType,
    ReviewVote,
    User,
    UserRole,
    Wishlist,
    WishlistEntry,
    level_for,
    utcnow,
)
from rewear.security import hash_password
from rewear.services.reviews import refresh_user_rating

logger = logging.getLogger(__name__)

DEMO_DOMAIN = "@demo.com"
DEMO_PASSWORD = "demo123"

DEMO_USERS = [
    {
        "name": "Demo Admin",
        "email": "admin@demo.com",
        "phone": "+91-9876543210",
        "role": UserRole.admin,
        "points": 10000,
        "bio": "Demo admin account for testing and demonstration purposes",
        "address": {"street": "123 Admin Street", "city": "Mumbai", "state": "Maharashtra", "country": "India", "postalCode": "400001"},
        "description": "Full admin access to manage users, items, and orders",
    },
    {
        "name": "Emma Johnson",
        "email": "emma@demo.com",
        "phone": "+91-9876543211",
        "points": 2500,
        "bio": "Fashion enthusiast and sustainable living advocate. Love finding unique vintage pieces!",
        "address": {"street": "456 Green Avenue", "city": "Delhi", "state": "Delhi", "country": "India", "postalCode": "110001"},
        "description": "Fashion enthusiast with many listings",
    },
    {
        "name": "Arjun Patel",
        "email": "arjun@demo.com",
        "phone": "+91-9876543212",
        "points": 1800,
        "bio": "Sneaker collector and streetwear enthusiast. Always looking for limited edition pieces.",
        "address": {"street": "789 Tech Park", "city": "Bangalore", "state": "Karnataka", "country": "India", "postalCode": "560001"},
        "description": "Sneaker collector and buyer",
    },
    {
        "name": "Priya Singh",
        "email": "priya@demo.com",
        "phone": "+91-9876543213",
        "points": 750,
        "bio": "Minimalist wardrobe curator. Passionate about quality over quantity.",
        "address": {"street": "321 Peaceful Lane", "city": "Pune", "state": "Maharashtra", "country": "India", "postalCode": "411001"},
        "description": "Minimalist with quality focus",
    },
    {
        "name": "Rahul Gupta",
        "email": "rahul@demo.com",
        "phone": "+91-9876543214",
        "points": 320,
        "bio": "Formal wear specialist. Building a sustainable business wardrobe.",
        "address": {"street": "654 Business District", "city": "Gurgaon", "state": "Haryana", "country": "India", "postalCode": "122001"},
        "description": "Formal wear specialist",
    },
    {
        "name": "Ananya Sharma",
        "email": "ananya@demo.com",
        "phone": "+91-9876543215",
        "points": 150,
        "bio": "New to sustainable fashion but excited to make a difference!",
        "address": {"street": "987 Student Area", "city": "Chennai", "state": "Tamil Nadu", "country": "India", "postalCode": "600001"},
        "description": "New user exploring sustainable fashion",
    },
]

# (title, category, sub category, brand, size, color, condition, original, price, tags, materials, views, likes)
DEMO_ITEMS = [
    ("Vintage Levi's 501 Jeans", "Bottoms", "Jeans", "Levi's", "M", "Blue", "Excellent", 4999, 2999,
     ["vintage", "classic", "denim", "casual"], ["Cotton", "Elastane"], 156, 23),
    ("Zara Floral Summer Dress", "Dresses", "Summer Dress", "Zara", "S", "Floral", "Like New", 3999, 1999,
     ["floral", "summer", "casual", "feminine"], ["Polyester", "Viscose"], 89, 15),
    ("Nike Air Force 1 Sneakers", "Shoes", "Sneakers", "Nike", "9", "White", "Good", 7999, 3499,
     ["sneakers", "casual", "streetwear", "white"], ["Leather", "Rubber"], 234, 42),
    ("H&M Wool Blend Blazer", "Formal", "Blazer", "H&M", "M", "Navy Blue", "Excellent", 4999, 2799,
     ["formal", "professional", "blazer", "navy"], ["Wool", "Polyester"], 67, 8),
    ("Adidas Track Jacket", "Activewear", "Track Jacket", "Adidas", "L", "Black", "Good", 3999, 1799,
     ["activewear", "vintage", "streetwear", "casual"], ["Polyester", "Cotton"], 123, 18),
    ("Mango Leather Handbag", "Accessories", "Handbag", "Mango", "One Size", "Brown", "Excellent", 5999, 3299,
     ["accessories", "leather", "handbag", "everyday"], ["Leather"], 45, 7),
    ("Uniqlo Cotton T-Shirt", "Tops", "T-Shirt", "Uniqlo", "M", "White", "Like New", 1499, 899,
     ["basics", "cotton", "casual", "versatile"], ["Cotton"], 78, 12),
    ("Forever 21 Denim Jacket", "Outerwear", "Denim Jacket", "Forever 21", "S", "Blue", "Good", 2999, 1499,
     ["denim", "vintage", "layering", "casual"], ["Cotton", "Polyester"], 156, 31),
]

DEMO_IMAGE = "https://images.unsplash.com/photo-1542272604-787c3835535d?w=500&h=600&fit=crop"


def clear_demo_data(db: Session) -> dict:
    """Removes every marketplace row plus the demo accounts."""
    for model in (
        ReviewVote,
        Review,
        WishlistEntry,
        Wishlist,
        PointTransaction,
        OrderEvent,
        Order,
        ItemFlag,
        ItemLike,
        ItemImage,
        Item,
    ):
        db.query(model).delete(synchronize_session=False)

    removed = (
        db.query(User)
        .filter(User.email.like(f"%{DEMO_DOMAIN}"))
        .delete(synchronize_session=False)
    )
    db.commit()

    logger.info("Demo data cleared | demo_users=%s", removed)
    return {"success": True, "message": "Demo data cleared successfully"}


def _address_for(user: User) -> dict:
    address = user.address or {}
    return {
        "fullName": user.name,
        "phone": user.phone,
        "addressLine1": address.get("street", ""),
        "addressLine2": None,
        "city": address.get("city", ""),
        "state": address.get("state", ""),
        "postalCode": address.get("postalCode", ""),
        "country": address.get("country", "India"),
    }


def create_demo_data(db: Session) -> dict:
    clear_demo_data(db)
    now = utcnow()
    password_hash = hash_password(DEMO_PASSWORD)

    users = []
    for data in DEMO_USERS:
        user = User(
            name=data["name"],
            email=data["email"],
            phone=data["phone"],
            password_hash=password_hash,
            role=data.get("role", UserRole.user),
            points=data["points"],
            level=level_for(data["points"]),
            bio=data["bio"],
            address=data["address"],
            is_verified=True,
        )
        user.wishlist = Wishlist()
        db.add(user)
        users.append(user)
    db.flush()

    # welcome ledger rows so every balance is backed by the ledger
    for user in users:
        db.add(PointTransaction(
            user_id=user.id,
            points=user.points,
            type=PointTransactionType.bonus,
            reason="Welcome bonus",
            balance_after=user.points,
        ))

    admin = users[0]
    sellers = users[1:]
    items = []
    for i, row in enumerate(DEMO_ITEMS):
        (title, category, sub_category, brand, size, color, condition,
         original_price, price, tags, materials, views, likes) = row
        seller = sellers[i % len(sellers)]
        item = Item(
            title=title,
            description=f"{title} from {brand}, pre-loved and ready for a new wardrobe.",
            category=ItemCategory(category),
            sub_category=sub_category,
            brand=brand,
            size=ItemSize(size),
            color=color,
            condition=ItemCondition(condition),
            original_price=original_price,
            price=price,
            seller_id=seller.id,
            status=ItemStatus.active,
            approved_by=admin.id,
            approved_at=now - timedelta(days=20),
            tags=tags,
            materials=materials,
            location_city=seller.address["city"],
            location_state=seller.address["state"],
            views=views,
            likes=likes,
            created_at=now - timedelta(days=30 - i),
        )
        item.images.append(ItemImage(
            url=DEMO_IMAGE,
            public_id=f"demo_item_{i + 1}",
            is_primary=True,
            position=0,
        ))
        db.add(item)
        items.append(item)
    db.flush()

    # (item index, buyer index, status, days since payment)
    orders = []
    for item_index, buyer_index, status, days in (
        (7, 2, OrderStatus.delivered, 15),
        (0, 3, OrderStatus.shipped, 5),
        (1, 4, OrderStatus.processing, 2),
    ):
        item = items[item_index]
        buyer = users[buyer_index]
        seller = db.get(User, item.seller_id)
        paid_at = now - timedelta(days=days)

        order = Order(
            buyer_id=buyer.id,
            seller_id=seller.id,
            item_id=item.id,
            amount=item.price + item.final_shipping_cost,
            item_price=item.price,
            shipping_cost=item.final_shipping_cost,
            payment_method=PaymentMethod.razorpay,
            status=status,
            shipping_address=_address_for(buyer),
            razorpay_order_id=f"order_demo_{len(orders) + 1:03d}",
            razorpay_payment_id=f"pay_demo_{len(orders) + 1:03d}",
            paid_at=paid_at,
            created_at=paid_at,
        )
        order.timeline.append(OrderEvent(status=OrderStatus.pending.value, note="Order placed", created_at=paid_at))
        order.timeline.append(OrderEvent(status=OrderStatus.paid.value, note="Payment verified", created_at=paid_at))

        if status in (OrderStatus.shipped, OrderStatus.delivered):
            order.tracking_number = f"TRK{len(orders) + 1:03d}DEMO"
            order.shipped_at = paid_at + timedelta(days=2)
            order.timeline.append(OrderEvent(status=OrderStatus.shipped.value, created_at=order.shipped_at))
        if status == OrderStatus.shipped:
            order.estimated_delivery = now + timedelta(days=2)
        if status == OrderStatus.delivered:
            order.delivered_at = paid_at + timedelta(days=5)
            order.timeline.append(OrderEvent(status=OrderStatus.delivered.value, created_at=order.delivered_at))
        if status == OrderStatus.processing:
            order.timeline.append(OrderEvent(status=OrderStatus.processing.value, created_at=paid_at))

        item.status = ItemStatus.sold
        item.sold_to_id = buyer.id
        item.sold_at = paid_at
        buyer.total_items_bought = (buyer.total_items_bought or 0) + 1
        seller.total_items_sold = (seller.total_items_sold or 0) + 1

        db.add(order)
        orders.append(order)
    db.flush()

    delivered = orders[0]
    reviews = [
        Review(
            reviewer_id=delivered.buyer_id,
            reviewee_id=delivered.seller_id,
            item_id=delivered.item_id,
            order_id=delivered.id,
            type=ReviewType.buyer_to_seller,
            rating=5,
            title="Excellent seller, highly recommended!",
            comment="The denim jacket was exactly as described. Shipped quickly and arrived well packaged.",
            aspects={"communication": 5, "itemCondition": 5, "packaging": 5, "delivery": 5, "overall": 5},
            created_at=now - timedelta(days=8),
        ),
        Review(
            reviewer_id=delivered.seller_id,
            reviewee_id=delivered.buyer_id,
            item_id=delivered.item_id,
            order_id=delivered.id,
            type=ReviewType.seller_to_buyer,
            rating=5,
            title="Great buyer experience",
            comment="Quick payment and smooth transaction. Would happily sell to this buyer again!",
            aspects={"communication": 5, "overall": 5},
            created_at=now - timedelta(days=8),
        ),
    ]
    db.add_all(reviews)
    db.flush()
    refresh_user_rating(db, delivered.seller_id)
    refresh_user_rating(db, delivered.buyer_id)

    # each shopper wishes for a couple of live listings from other sellers
    active = [i for i in items if i.status == ItemStatus.active]
    for user in sellers:
        picks = [i for i in active if i.seller_id != user.id][:2]
        for offset, item in enumerate(picks):
            user.wishlist.entries.append(WishlistEntry(
                item_id=item.id,
                notes="Interested in this piece",
                added_at=now - timedelta(days=offset + 1),
            ))

    db.commit()

    logger.info(
        "Demo data created | users=%s | items=%s | orders=%s | reviews=%s",
        len(users), len(items), len(orders), len(reviews),
    )
    return {
        "success": True,
        "message": "Demo data created successfully",
        "data": {
            "users": len(users),
            "items": len(items),
            "orders": len(orders),
            "reviews": len(reviews),
        },
    }


def demo_accounts() -> list[dict]:
    return [
        {
            "email": u["email"],
            "password": DEMO_PASSWORD,
            "name": u["name"],
            "role": u.get("role", UserRole.user).value,
            "description": u["description"],
        }
        for u in DEMO_USERS
    ]
