"""Outbound message texts and interactive payloads."""

from inventory_agent.models.product import MAX_IMAGES
from inventory_agent.services.media_gateway import MAX_VIDEO_SECONDS

ONBOARDING_WELCOME = (
    "Welcome to Badminton Store Manager! 🏸\n\n"
    "I see you are new here. Let's get you set up.\n\n"
    "First, what is your *Full Name*?"
)
ASK_STORE_NAME = "Nice to meet you, {name}! 👋\n\nNow, what is the name of your *Store*?"
ASK_FULL_NAME_AGAIN = "Please type your *Full Name* to continue registration."
ASK_STORE_NAME_AGAIN = "Please type your *Store* name to finish registration."
ONBOARDING_COMPLETE = (
    "Awesome! Your store *{store_name}* is now registered. 🎉\n\n"
    "Your account is pending admin approval. You can already start adding products."
)

SEND_PHOTO = "📸 Send me a photo of the product.\n\n(Max 2MB, JPG/PNG/WebP)"
DESCRIBE_PRODUCT = (
    "Great photo! Now describe the product:\n\n"
    "*Name, Price, Description*\n"
    "Example: Yonex Astrox 88D, 15000, brand new"
)
SEND_PHOTO_AGAIN = "Please send a *photo* of the product first, or type *cancel*."
DESCRIBE_PRODUCT_AGAIN = "Please describe the product as text: *Name, Price, Description*"
SELECT_FROM_LIST = "Please pick a product from the list above, or type *cancel*."
SELECT_FIELD = "Please tap one of the buttons: Price, Stock or Name."
CONFIRM_DELETE_AGAIN = "Please tap *Yes, Delete* or *Cancel*."
ENTER_VALUE = {
    "price": "Enter the new *price* (numbers only, e.g. 15000):",
    "stock": "Enter the new *stock* quantity (e.g. 5):",
    "name": "Enter the new *name*:",
}

CANCELLED = "✅ Cancelled. How can I help you?"
DELETE_CANCELLED = "👍 Cancelled. The product was not deleted."
USE_BUTTONS = "Please use the buttons below to manage your store. 👇"
TEXT_ONLY_HINT = (
    "To add a product, tap *Add Product* and send a photo, "
    "or send a photo with the product details as its caption."
)
OPTION_EXPIRED = "⌛ That option has expired. Let's start again."
PRODUCT_NOT_FOUND = "❌ Product not found."
NO_PRODUCTS = "📦 You don't have any products yet!"
WHICH_PRODUCT_IMAGE = (
    "📷 I received your image, but I don't know which product to add it to.\n\n"
    "Tap *More Options* → *Add Photos* and pick a product, "
    "or send the photo with the product details as its caption to create a new product."
)
WHICH_PRODUCT_VIDEO = (
    "🎬 I received your video, but I don't know which product to add it to.\n\n"
    "Tap *More Options* → *Add Video* and pick a product first."
)
PROCESSING_ERROR = "Sorry, I encountered an error processing your request. Please try again."
UPLOAD_FAILED = "❌ Failed to upload the media. Please try again."
UPLOADING_VIDEO = "⏳ Uploading video... (this may take a moment)"
SELECT_IMAGE_TO_REMOVE = "Please pick a photo to remove from the list above, or type *cancel*."


def format_price(price: int) -> str:
    return f"PKR {price:,}"


def product_created(product, price_missing: bool, dropped_images: int = 0) -> str:
    lines = [
        "✅ *Product Created!*",
        "",
        f"📦 *{product.name}*",
        f"💰 Price: {format_price(product.price)}",
        f"📊 Stock: {product.stock}",
        f"🏷️ {product.category} | {product.brand} | {product.condition}",
        f"📸 Images: {len(product.images or [])}/{MAX_IMAGES}",
    ]
    if dropped_images:
        lines.append(f"_Only {MAX_IMAGES} images are kept; {dropped_images} extra were skipped._")
    if price_missing:
        lines += ["", "_💡 Tip: set the price with More Options → Update._"]
    return "\n".join(lines)


def media_too_large(size_mb: float) -> str:
    return f"❌ Media is too large ({size_mb}MB)."


def image_too_large(size_mb: float) -> str:
    return f"❌ Image is too large ({size_mb}MB).\n\nMaximum allowed: 2MB"


def images_full(name: str) -> str:
    return f"❌ *{name}* already has {MAX_IMAGES} images (maximum allowed)."


def choose_update_field(name: str) -> str:
    return f"What do you want to change on *{name}*?"


def product_updated(product) -> str:
    return f"✅ *{product.name}* updated!\n\n💰 Price: {format_price(product.price)}\n📊 Stock: {product.stock}"


def product_deleted(name: str) -> str:
    return f"🗑️ *{name}* has been deleted."


def product_list(products) -> str:
    lines = [f"📦 *Your Products* ({len(products)})", ""]
    for index, product in enumerate(products, 1):
        media = f"📸 {len(product.images or [])}"
        if product.has_video:
            media += " 🎬"
        lines.append(f"{index}. *{product.name}*\n   {format_price(product.price)} | Stock: {product.stock} | {media}")
    return "\n".join(lines)


def confirm_delete(name: str) -> str:
    return f"Are you sure you want to delete *{name}*?\n\nThis action cannot be undone."


def ready_for_images(product) -> str:
    count = len(product.images or [])
    remaining = MAX_IMAGES - count
    return (
        f"📸 Ready to receive images for *{product.name}*!\n\n"
        f"Current images: {count}/{MAX_IMAGES}. You can add up to {remaining} more.\n\n"
        "*Constraints:*\n• Max 2MB per image\n• JPG, PNG, WebP\n\n"
        "Send the image(s) now! (This expires in 5 minutes)"
    )


def ready_for_video(product) -> str:
    replace_note = "\n\nThe current video will be replaced." if product.has_video else ""
    return (
        f"🎬 Ready to receive a video for *{product.name}*!\n\n"
        f"*Constraints:*\n• Max {MAX_VIDEO_SECONDS} seconds\n• Max 50MB\n\n"
        f"Send the video now! (This expires in 5 minutes){replace_note}"
    )


def image_added(product, image_count: int) -> str:
    message = f"✅ Image added to *{product.name}*!\n\n📸 Images: {image_count}/{MAX_IMAGES}"
    if image_count >= MAX_IMAGES:
        message += "\n\nThat's the maximum. 🎉"
    else:
        message += "\n\nSend another photo to add more."
    return message


def video_added(product, duration_seconds) -> str:
    return f"✅ Video added to *{product.name}*!\n\n🎬 Duration: {round(duration_seconds or 0)} seconds"


def main_menu(seller) -> dict:
    store_name = seller.store_name if seller.store_name and seller.store_name != "Pending" else "Your Store"
    return {
        "header": f"🏪 {store_name}",
        "body": f"Hello {seller.name or 'there'}! What would you like to do?",
        "footer": "Tap a button below",
        "buttons": [
            {"id": "ADD_PRODUCT", "title": "➕ Add Product"},
            {"id": "LIST_PRODUCTS", "title": "📦 View Products"},
            {"id": "MORE_OPTIONS", "title": "⚙️ More Options"},
        ],
    }


def more_options() -> dict:
    return {
        "header": "More Options",
        "body": "What would you like to do?",
        "button_text": "Choose",
        "sections": [
            {
                "title": "Manage Products",
                "rows": [
                    {"id": "UPDATE_PRODUCT", "title": "✏️ Update Product", "description": "Change price, stock or name"},
                    {"id": "DELETE_PRODUCT", "title": "🗑️ Delete Product", "description": "Remove a product"},
                ],
            },
            {
                "title": "Media",
                "rows": [
                    {"id": "ADD_IMAGES", "title": "📸 Add Photos", "description": f"Up to {MAX_IMAGES} per product"},
                    {"id": "ADD_VIDEO", "title": "🎬 Add Video", "description": f"Max {MAX_VIDEO_SECONDS} seconds"},
                    {"id": "REMOVE_IMAGES", "title": "🗑️ Remove Photos", "description": "Delete one or all photos"},
                    {"id": "REMOVE_VIDEO", "title": "🗑️ Remove Video", "description": "Delete the product video"},
                ],
            },
            {
                "title": "Navigation",
                "rows": [{"id": "MAIN_MENU", "title": "🏠 Main Menu"}],
            },
        ],
    }


SELECTION_PREFIXES = {
    "update": ("UPDATE_PRODUCT_", "Update"),
    "delete": ("DELETE_PRODUCT_", "Delete"),
    "images": ("SELECT_PRODUCT_", "Add Photos"),
    "video": ("SELECT_PRODUCT_", "Add Video"),
    "remove_images": ("SELECT_PRODUCT_", "Remove Photos"),
    "remove_video": ("SELECT_PRODUCT_", "Remove Video"),
}


def product_selection(products, operation: str) -> dict:
    prefix, action = SELECTION_PREFIXES[operation]
    rows = []
    for product in products:
        description = f"{format_price(product.price)} | Stock: {product.stock}"
        if operation in ("images", "remove_images"):
            description = f"📸 {len(product.images or [])}/{MAX_IMAGES} images"
        elif operation in ("video", "remove_video"):
            description = "🎬 Has video" if product.has_video else "No video yet"
        rows.append({"id": f"{prefix}{product.id}", "title": product.name, "description": description})
    return {
        "header": f"{action} Product",
        "body": f"Select a product ({action.lower()}):",
        "footer": f"{len(products)} products found",
        "button_text": "Select Product",
        "sections": [{"title": "Your Products", "rows": rows}],
    }


UPDATE_FIELD_BUTTONS = [
    {"id": "UPDATE_PRICE", "title": "💰 Price"},
    {"id": "UPDATE_STOCK", "title": "📊 Stock"},
    {"id": "UPDATE_NAME", "title": "📝 Name"},
]

CONFIRM_DELETE_BUTTONS = [
    {"id": "CONFIRM_DELETE_YES", "title": "🗑️ Yes, Delete"},
    {"id": "CONFIRM_DELETE_NO", "title": "❌ Cancel"},
]


def no_photos(name: str) -> str:
    return f"❌ *{name}* has no photos to remove."


def image_removal(product) -> dict:
    rows = []
    for index, image in enumerate(product.images or [], 1):
        name = (image.get("url") or "").rsplit("/", 1)[-1]
        rows.append({"id": f"REMOVE_IMAGE_{index}", "title": f"Photo {index}", "description": name[:72]})
    rows.append({"id": "REMOVE_IMAGE_ALL", "title": "🗑️ All photos", "description": f"Remove all {len(rows)}"})
    return {
        "header": "Remove Photos",
        "body": f"Which photo of *{product.name}* should be removed?",
        "button_text": "Choose Photo",
        "sections": [{"title": "Photos", "rows": rows}],
    }


def images_removed(product, removed_all: bool) -> str:
    removed = "All photos removed" if removed_all else "Photo removed"
    return f"🗑️ {removed} from *{product.name}*.\n\n📸 Images: {len(product.images or [])}/{MAX_IMAGES}"


def video_removed(product) -> str:
    return f"🗑️ Video removed from *{product.name}*."


def product_details(product) -> str:
    lines = [
        f"📦 *{product.name}*",
        f"💰 Price: {format_price(product.price)}",
        f"📊 Stock: {product.stock}",
        f"🏷️ {product.category} | {product.brand} | {product.condition}",
    ]
    if product.description:
        lines.append(f"📝 {product.description}")
    urls = product.image_urls
    lines.append(f"📸 Images: {len(urls)}/{MAX_IMAGES}")
    lines += [f"   {index}. {url}" for index, url in enumerate(urls, 1)]
    if product.has_video:
        lines.append(f"🎬 Video: {product.video.get('url')}")
    return "\n".join(lines)
