"""Outbound message texts and the formatters that fill them in."""

MSG_WELCOME = """🌱 Welcome to Farm Assistant!

I'm here to help you with:
• 📝 Farmer registration
• 🌤️ Weather-based advice
• 💰 Market price insights
• 🤖 AI-powered recommendations

Type "help" to see all commands."""

MSG_HELP = """📋 Available Commands:

• "register" - Register as a farmer
• "advice" - Get farming advice
• "feedback" - Send feedback
• "status" - Check your profile
• "help" - Show this help
• "hi" or "hey" - Greeting

Just type any command directly!"""

MSG_INVALID_COMMAND = """❌ I didn't understand that command.

Type "help" to see available commands."""

MSG_NOT_REGISTERED = "❌ You're not registered yet. Use 'register' to get started!"

MSG_REGISTER_FIRST_ADVICE = "❌ Please register first using 'register' to get personalized advice."
MSG_REGISTER_FIRST_FEEDBACK = "❌ Please register first using 'register' to provide feedback."

MSG_ASK_NAME = """📝 Let's register you as a farmer!

What is your full name?"""

MSG_ASK_NAME_AGAIN = "✍️ Please type your full name."

MSG_ASK_FIRST_CROP = """👋 Nice to meet you, {name}!

🌾 What crop do you grow? (e.g., maize, rice, wheat)"""

MSG_ASK_FIRST_CROP_AGAIN = "🌾 Please tell me at least one crop you grow (e.g., maize, rice, wheat)."

MSG_MORE_CROPS_QUESTION = """🌾 Great! You grow {crops}.

Do you grow any other crops?
• Type "yes" to add more crops
• Type "no" to continue with location"""

MSG_ADD_MORE_CROPS = """🌱 What other crop do you grow?
(e.g., maize, rice, wheat, vegetables, beans, etc.)

Type "done" when you're finished adding crops."""

MSG_CROP_ADDED = """✅ Added {crop}. So far you grow: {crops}

Type another crop, or "done" when you're finished."""

MSG_CROPS_COMPLETE = """✅ Perfect! You grow: {crops}

Now, where is your farm located? (e.g., city, region, state)"""

MSG_ASK_LOCATION_AGAIN = "📍 Please tell me where your farm is located (e.g., city, region, state)."

MSG_ASK_LANGUAGE = """🗣️ Which language do you prefer? (e.g., English, Hausa, Yoruba, Igbo)"""

MSG_ASK_LANGUAGE_AGAIN = "🗣️ Please type your preferred language."

MSG_REGISTRATION_COMPLETE = """✅ Registration complete!

📝 *Name:* {name}
🌱 *Crops:* {crops}
📍 *Location:* {location}
🗣️ *Language:* {language}

Your farmer profile has been saved. You can now:
• Get personalized advice with "advice"
• Update your status with "feedback"
• Check your profile with "status\""""

MSG_ADVICE_REQUEST = """🤖 Getting your personalized farming advice...

This may take a moment while I analyze:
• Your farm profile
• Current weather conditions
• Market prices
• Best practices"""

MSG_AI_LOADING = (
    "🌤️ Checking the latest weather conditions for your farm...",
    "💰 Looking up current market prices for your crops...",
    "🤖 Putting together your personalized recommendations...",
)

MSG_ADVICE_FAILED = "❌ Sorry, I couldn't generate advice right now. Please try again later."

MSG_FEEDBACK_REQUEST = """📝 Share your feedback!

You can tell me about:
• "Planted" - I've planted my crops
• "Harvested" - I've harvested
• "Pest problem" - I have pest issues
• "Weather issue" - Weather problems
• "Market update" - Market information
• Or any other updates

Just type your feedback after "feedback\""""

MSG_FEEDBACK_FAILED = "❌ Error processing your feedback. Please try again later."

MSG_SOMETHING_WENT_WRONG = "❌ Something went wrong on our side. Please try again later."


def format_crops(crops):
    return ", ".join(crops)


def format_welcome(sender):
    return f"Hey, {sender or 'there'}! {MSG_WELCOME}"


def format_status(profile):
    return f"""👤 *Your Farmer Profile*

📝 *Name:* {profile.name}
🌱 *Crops:* {format_crops(profile.crops)}
📍 *Location:* {profile.location}
🗣️ *Language:* {profile.language}
📱 *Phone:* {profile.phone}

You can:
• Get advice with "advice"
• Send feedback with "feedback"
• Update your profile anytime with "register\""""


def format_advice(advice, weather, market):
    return f"""🌱 *Your Personalized Farming Advice*

🌤️ *Weather Conditions:*
• Temperature: {weather.temperature:.1f}°C
• Humidity: {weather.humidity:.1f}%
• Condition: {weather.condition}
• Rainfall: {weather.rainfall:.1f}mm

💰 *Market Information:*
• {market.crop_type} Price: {market.currency}{market.price:.2f} per {market.unit}
• Trend: {market.trend.title()}

🤖 *AI Recommendations:*

🌱 *Planting:* {advice.planting}

💧 *Irrigation:* {advice.irrigation}

🌾 *Harvest:* {advice.harvest}

📈 *Market Strategy:* {advice.market}

💡 *General Advice:* {advice.general}

*Confidence: {advice.confidence}% | Generated: {advice.generated_at[:10]}*"""
