"""
Product catalog and canned customer-service texts
Keyword entries are checked in order; the first entry with a matching keyword wins.
"""

PRODUCTS = {
    "single_bottle": {"name": "Single Bottle", "price": 7, "deposit": 15, "description": "5-gallon water bottle"},
    "trial_bottle": {"name": "Trial Bottle", "price": 7, "deposit": 15, "description": "Trial 5-gallon water bottle"},
    "table_dispenser": {"name": "Table Top Dispenser", "price": 25, "deposit": 0, "description": "Basic table top dispenser"},
    "hand_pump": {"name": "Hand Pump", "price": 15, "deposit": 0, "description": "Manual hand pump for bottles"},
    "premium_cooler": {"name": "Premium Water Cooler", "price": 300, "deposit": 0, "description": "Premium cooler with 1-year warranty"},
    "coupon_10_1": {"name": "10+1 Coupon Book", "price": 70, "deposit": 0, "description": "11 bottles (10+1 free), up to 3 bottles without deposit"},
    "coupon_100_40": {"name": "100+40 Coupon Book", "price": 700, "deposit": 0, "description": "140 bottles, up to 5 bottles without deposit, BNPL available"},
    "premium_package": {"name": "140 Bottles + Dispenser", "price": 920, "deposit": 0, "description": "140 bottles + Premium dispenser package"},
}

# Classifier product entity -> catalog key
PRODUCT_ALIASES = {
    "bottle": "single_bottle",
    "water": "single_bottle",
    "dispenser": "table_dispenser",
    "cooler": "premium_cooler",
    "coupon": "coupon_10_1",
    "book": "coupon_10_1",
    "package": "premium_package",
}

GREETING_TEXT = """Hello! Welcome to our water delivery service! 💧

I'm your assistant and can help you with:
• 📦 Product information & pricing
• 🛒 Order placement
• 🚚 Delivery scheduling
• 👤 Account lookup - just send your mobile number

*How can I assist you today?*

Try: "I need water for my office" or "What's your cheapest option?\""""

MENU_TEXT = """*OUR PRODUCTS & SERVICES* 💧

*WATER BOTTLES*
• Single Bottle - AED 7 (+15 deposit)
• Trial Bottle - AED 7 (+15 deposit)

*EQUIPMENT*
• Table Top Dispenser - AED 25
• Hand Pump - AED 15
• Premium Water Cooler - AED 300 (1-year warranty)

*COUPON BOOKS* (Best Value!)
• 10+1 Coupon Book - AED 70 (no deposit for 3 bottles)
• 100+40 Coupon Book - AED 700 (no deposit for 5 bottles, BNPL available)
• 140 Bottles + Dispenser Package - AED 920

*DELIVERY AREAS*
Dubai, Sharjah, Ajman (except freezones)

Type "order [product]" to place an order
Example: "order single bottle\""""

COUPON_TEXT = """*COUPON BOOK SYSTEM* 🎟️

A coupon = one bottle. Give coupons to the delivery person = get bottles!

*BENEFITS:*
• 💰 No bottle deposit (save AED 15/bottle)
• ⚡ Priority delivery
• 📅 Out-of-schedule delivery possible
• 🚚 FREE delivery charges
• 💵 No cash payment hassle
• 📉 Better price per bottle (as low as AED 5!)

*AVAILABLE BOOKS:*
• 10+1 Book (AED 70) - up to 3 bottles without deposit
• 100+40 Book (AED 700) - up to 5 bottles without deposit

*BUY NOW PAY LATER:*
Available ONLY for the 100+40 Coupon Book

Ready to get started with coupons?"""

DELIVERY_TEXT = """*DELIVERY INFORMATION* 🚚

*COVERAGE AREAS:*
✅ Dubai - Full coverage (except JAFZA & Airport Freezone)
✅ Sharjah - Complete emirate coverage
✅ Ajman - All areas served

*SCHEDULING:*
• Message us for delivery requests
• We'll set up your weekly schedule
• Urgent/out-of-schedule requests welcome

*DELIVERY CHARGES:*
• FREE with coupon books
• Standard charges for individual bottles

*DELIVERY PROMISE:*
• Same-day delivery possible
• WhatsApp delivery confirmations

Ready to schedule your delivery?"""

PAYMENT_TEXT = """*PAYMENT METHODS* 💳

*WE ACCEPT:*
• 💵 Cash on delivery
• 💳 Card payment (subject to availability)
• 🏦 Bank transfer

*SPECIAL OFFERS:*
• Buy Now Pay Later - available for the 100+40 Coupon Book only
• Bulk discounts for large orders
• Corporate payment plans available

*TRANSPARENT PRICING:*
• Base price: AED 7/bottle
• With coupon books: as low as AED 5/bottle

Ready to place an order?"""

EQUIPMENT_TEXT = """*EQUIPMENT AVAILABLE* 🛠️

*DISPENSERS:*
• Table Top Dispenser - AED 25
• Hand Pump - AED 15
• Premium Water Cooler - AED 300

*WARRANTY:*
The premium cooler comes with a 1-year warranty

*PACKAGE DEAL:*
140 Bottles + Premium Dispenser = AED 920

Would you like to order any equipment?"""

HELP_TEXT = """*HOW I CAN HELP* 🙋

• Type "menu" - See all products
• Type "order [product]" - Place an order
• Send a mobile number - Get customer details
• Ask about delivery, pricing or coupons

*Example queries:*
• "order single bottle"
• "I need water for 20 people"
• "Can you deliver to Marina tomorrow?"

What would you like to do?"""

GOODBYE_TEXT = "Goodbye! Thank you for choosing our water delivery service. Have a great day! 👋"

KNOWLEDGE_BASE = [
    {
        "category": "greetings",
        "keywords": ["hello", "hi", "hey", "good morning", "good afternoon", "good evening"],
        "response": GREETING_TEXT,
    },
    {
        "category": "menu",
        "keywords": ["menu", "products", "catalog", "price list", "what do you sell"],
        "response": MENU_TEXT,
    },
    {
        "category": "coupon_info",
        "keywords": ["coupon", "coupon book", "what is coupon", "benefits", "bnpl", "buy now pay later"],
        "response": COUPON_TEXT,
    },
    {
        "category": "delivery",
        "keywords": ["delivery", "schedule", "when", "how long", "timing", "areas"],
        "response": DELIVERY_TEXT,
    },
    {
        "category": "payment",
        "keywords": ["payment", "pay", "cash", "card", "bank transfer", "installment"],
        "response": PAYMENT_TEXT,
    },
    {
        "category": "equipment",
        "keywords": ["dispenser", "cooler", "equipment", "table top", "hand pump", "warranty"],
        "response": EQUIPMENT_TEXT,
    },
]

LOCATION_DELIVERY_NOTES = {
    "dubai": "*🏙️ DUBAI DELIVERY:*\n• Same-day delivery available\n• All areas except JAFZA\n• Premium areas: Marina, Downtown, JBR",
    "sharjah": "*🏘️ SHARJAH DELIVERY:*\n• Next-day delivery standard\n• Full emirate coverage\n• Industrial areas supported",
    "ajman": "*🏖️ AJMAN DELIVERY:*\n• Same/next-day delivery\n• Complete coverage\n• Beach areas included",
}
