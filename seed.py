from designstudio import create_app, db
from designstudio.billing import record_transaction
from designstudio.models import BrandKit, STARTING_CREDITS, TransactionType, User, UserCreation

app = create_app()
with app.app_context():
    # User
    u = User(username="demo", email="demo@example.com", display_name="Demo User", credits_balance=STARTING_CREDITS)
    u.set_password("demo123")
    db.session.add(u); db.session.flush()
    record_transaction(u, STARTING_CREDITS, TransactionType.initial, "Initial credits allocation")

    # Brand kit
    k = BrandKit(user_id=u.id, name="Demo Brand", primary_color="#1e3a8a", secondary_color="#f59e0b",
                 accent_color="#10b981", heading_font="Montserrat", body_font="Inter",
                 brand_voice="Friendly and confident", is_active=True)
    db.session.add(k)

    # Creation
    c = UserCreation(user_id=u.id, name="Summer Sale Flyer", image_url="https://placehold.co/800x1200.jpg",
                     prompt="Summer sale flyer, 30% off everything", headline="Summer Sale",
                     content="30% off everything this weekend", template="default", aspect_ratio="stories")
    db.session.add(c)

    db.session.commit()
    print("Seeded demo data (login demo / demo123).")
