import logging

logger = logging.getLogger("i18n")

SUPPORTED_LANGS = ["en", "hi"]

MESSAGES = {
    # ── Registration ─────────────────────────────────────────────
    "REGISTRATION_WELCOME": {
        "en": "Hello {name}! Welcome to *Sukoon Saarthi* - your personal health assistant.\n\n"
              "Let's take a moment to set up your account. Reply with any message to begin.",
        "hi": "नमस्ते {name}! *सुकून साथी* में आपका स्वागत है - आपका व्यक्तिगत स्वास्थ्य सहायक।\n\n"
              "आइए अपना खाता सेटअप करें। शुरू करने के लिए कोई भी संदेश भेजें।",
    },
    "REGISTRATION_WELCOME_GUEST": {
        "en": "Hello! Welcome to *Sukoon Saarthi* - your personal health assistant.\n\n"
              "Let's take a moment to set up your account. Reply with any message to begin.",
        "hi": "नमस्ते! *सुकून साथी* में आपका स्वागत है - आपका व्यक्तिगत स्वास्थ्य सहायक।\n\n"
              "आइए अपना खाता सेटअप करें। शुरू करने के लिए कोई भी संदेश भेजें।",
    },
    "LANGUAGE_SELECTION": {
        "en": "Please select your preferred language:\n\n1. English\n2. हिंदी (Hindi)",
        "hi": "कृपया अपनी पसंदीदा भाषा चुनें:\n\n1. English\n2. हिंदी",
    },
    "LANGUAGE_SELECTION_ERROR": {
        "en": "I didn't understand that choice. Please select a language:\n\n1. English\n2. हिंदी (Hindi)",
        "hi": "मैं उस विकल्प को नहीं समझा। कृपया एक भाषा चुनें:\n\n1. English\n2. हिंदी",
    },
    "AGE_QUESTION": {
        "en": "Great! Now, please tell me your age in years.",
        "hi": "बढ़िया! अब, कृपया मुझे अपनी उम्र वर्षों में बताएं।",
    },
    "AGE_ERROR": {
        "en": "Please enter a valid age between 1 and 120.",
        "hi": "कृपया 1 से 120 के बीच एक वैध उम्र दर्ज करें।",
    },
    "NAME_QUESTION": {
        "en": "Thank you. What should I call you? Please type your name.",
        "hi": "धन्यवाद। मैं आपको किस नाम से बुलाऊं? कृपया अपना नाम लिखें।",
    },
    "NAME_QUESTION_WITH_PROFILE": {
        "en": "Thank you. What should I call you? Type your name, or reply 1 to use \"{display_name}\".",
        "hi": "धन्यवाद। मैं आपको किस नाम से बुलाऊं? अपना नाम लिखें, या \"{display_name}\" के लिए 1 भेजें।",
    },
    "NAME_ERROR": {
        "en": "Please type your name (up to 60 letters).",
        "hi": "कृपया अपना नाम लिखें (60 अक्षरों तक)।",
    },
    "CONDITIONS_QUESTION": {
        "en": "Do you have any health conditions I should know about (for example: diabetes, blood pressure)?\n\n"
              "Separate them with commas, or reply 'none'.",
        "hi": "क्या आपको कोई स्वास्थ्य समस्या है जिसके बारे में मुझे पता होना चाहिए (जैसे: डायबिटीज़, ब्लड प्रेशर)?\n\n"
              "उन्हें कॉमा से अलग करें, या 'नहीं' लिखें।",
    },
    "REGISTRATION_COMPLETE": {
        "en": "Thank you, {name}! Your account is ready. 🎉",
        "hi": "धन्यवाद, {name}! आपका खाता तैयार है। 🎉",
    },

    # ── Menus ────────────────────────────────────────────────────
    "WELCOME": {
        "en": "👋 Welcome to *Sukoon Saarthi*! Your health companion.\n\n"
              "I'm here to help you manage your medications and monitor your health.",
        "hi": "👋 *सुकून साथी* में आपका स्वागत है! आपका स्वास्थ्य साथी।\n\n"
              "मैं आपकी दवाओं और स्वास्थ्य की निगरानी में आपकी मदद करने के लिए यहां हूं।",
    },
    "MAIN_MENU": {
        "en": "What would you like to do today?\n\n1. Manage Medications 💊\n2. Track Health 📈\n"
              "3. View Reports 📋\n4. Family Settings 👪\n5. Help",
        "hi": "आज आप क्या करना चाहेंगे?\n\n1. दवाएं प्रबंधित करें 💊\n2. स्वास्थ्य ट्रैक करें 📈\n"
              "3. रिपोर्ट देखें 📋\n4. परिवार सेटिंग्स 👪\n5. मदद",
    },
    "HELP_MENU": {
        "en": "Here's how I can help you:\n\n• Add medication: Type 'add medication'\n"
              "• Check schedule: Type 'schedule'\n• Mark a dose taken: Type 'taken'\n"
              "• Record health: Type 'health'\n• Check interactions: Type 'interactions'\n"
              "• Health tips: Type 'tips'\n• Family access: Type 'family'\n"
              "• Change language: Type 'language'\n• Start over: Type 'reset'",
        "hi": "मैं आपकी इस प्रकार मदद कर सकता हूं:\n\n• दवा जोड़ें: 'दवा जोड़ें' टाइप करें\n"
              "• शेड्यूल जांचें: 'शेड्यूल' टाइप करें\n• खुराक ली: 'ले लिया' टाइप करें\n"
              "• स्वास्थ्य रिकॉर्ड करें: 'स्वास्थ्य' टाइप करें\n• दवा इंटरैक्शन: 'interactions' टाइप करें\n"
              "• स्वास्थ्य सुझाव: 'tips' टाइप करें\n• परिवार पहुंच: 'परिवार' टाइप करें\n"
              "• भाषा बदलें: 'भाषा' टाइप करें\n• फिर से शुरू करें: 'reset' टाइप करें",
    },
    "FAMILY_SETTINGS": {
        "en": "👪 *Family access*\n\nIf you look after a family member, you can act for them by starting "
              "your message with *for:* and their name.\n\nExample: for:Mom taken\n\n"
              "1. Let a family member act for you\n\nType 'menu' to go back.",
        "hi": "👪 *परिवार पहुंच*\n\nअगर आप परिवार के किसी सदस्य की देखभाल करते हैं, तो संदेश की शुरुआत "
              "*for:* और उनके नाम से करें।\n\nउदाहरण: for:Mom taken\n\n"
              "1. परिवार के किसी सदस्य को अपनी ओर से काम करने दें\n\nवापस जाने के लिए 'मेनू' लिखें।",
    },
    "FAMILY_ASK_PHONE": {
        "en": "What is your family member's WhatsApp number? (e.g. 9876543210 or +919876543210)\n\n"
              "Type 'cancel' to stop.",
        "hi": "आपके परिवार के सदस्य का WhatsApp नंबर क्या है? (जैसे 9876543210 या +919876543210)\n\n"
              "रोकने के लिए 'रद्द' लिखें।",
    },
    "FAMILY_PHONE_ERROR": {
        "en": "That doesn't look like a valid phone number. Please send a 10-digit mobile number "
              "or a number starting with +.",
        "hi": "यह सही फ़ोन नंबर नहीं लगता। कृपया 10 अंकों का मोबाइल नंबर या + से शुरू होने वाला नंबर भेजें।",
    },
    "FAMILY_ASK_LABEL": {
        "en": "What does this person call you? Send one word, e.g. Mom, Papa, Dadi.",
        "hi": "यह व्यक्ति आपको क्या कहकर बुलाता है? एक शब्द भेजें, जैसे Mom, Papa, Dadi।",
    },
    "FAMILY_LABEL_ERROR": {
        "en": "Please send a single word (up to 40 letters), e.g. Mom.",
        "hi": "कृपया एक ही शब्द भेजें (40 अक्षरों तक), जैसे Mom।",
    },
    "FAMILY_LINKED": {
        "en": "✅ Done! Your family member can now send *for:{label}* followed by a command to help you.",
        "hi": "✅ हो गया! अब आपके परिवार के सदस्य *for:{label}* और कोई कमांड भेजकर आपकी मदद कर सकते हैं।",
    },
    "GENERIC_ERROR": {
        "en": "I'm sorry, I couldn't process that. Please try again or type 'help' for assistance.",
        "hi": "मुझे खेद है, मैं उसे प्रोसेस नहीं कर सका। कृपया फिर से प्रयास करें या सहायता के लिए 'मदद' टाइप करें।",
    },
    "NOT_IMPLEMENTED": {
        "en": "This feature is coming soon! Thank you for your patience.",
        "hi": "यह सुविधा जल्द ही आ रही है! आपके धैर्य के लिए धन्यवाद।",
    },
    "CANCELLED": {
        "en": "Okay, I've cancelled that. Type 'menu' to see what else I can do.",
        "hi": "ठीक है, मैंने उसे रद्द कर दिया है। और विकल्प देखने के लिए 'मेनू' टाइप करें।",
    },
    "SESSION_RESET": {
        "en": "Your conversation has been reset. Send any message to start again.",
        "hi": "आपकी बातचीत रीसेट कर दी गई है। फिर से शुरू करने के लिए कोई भी संदेश भेजें।",
    },

    # ── Medications ──────────────────────────────────────────────
    "MEDICATION_ADD_START": {
        "en": "Let's add a new medication. You can either:\n\n1. Take a photo of your prescription\n"
              "2. Enter medication details manually\n\nType 'cancel' at any time to stop.",
        "hi": "चलिए एक नई दवा जोड़ते हैं। आप या तो:\n\n1. अपने नुस्खे की एक फोटो ले सकते हैं\n"
              "2. दवा विवरण मैन्युअल रूप से दर्ज कर सकते हैं\n\nरोकने के लिए कभी भी 'रद्द' टाइप करें।",
    },
    "MEDICATION_ADD_START_ERROR": {
        "en": "Please reply 1 for a prescription photo or 2 to enter details manually.",
        "hi": "नुस्खे की फोटो के लिए 1 या विवरण दर्ज करने के लिए 2 भेजें।",
    },
    "PRESCRIPTION_PHOTO_UNAVAILABLE": {
        "en": "Reading prescription photos is coming soon. Let's enter the details together instead.\n\n"
              "What is the name of the medicine?",
        "hi": "नुस्खे की फोटो पढ़ना जल्द ही आ रहा है। चलिए विवरण साथ में दर्ज करते हैं।\n\nदवा का नाम क्या है?",
    },
    "MEDICATION_ASK_NAME": {
        "en": "What is the name of the medicine?",
        "hi": "दवा का नाम क्या है?",
    },
    "MEDICATION_NAME_ERROR": {
        "en": "Please type the medicine name (up to 80 letters).",
        "hi": "कृपया दवा का नाम लिखें (80 अक्षरों तक)।",
    },
    "MEDICATION_ASK_DOSAGE": {
        "en": "What is the dosage of {name}? (for example: 500mg or 1 tablet)",
        "hi": "{name} की खुराक क्या है? (जैसे: 500mg या 1 गोली)",
    },
    "MEDICATION_DOSAGE_ERROR": {
        "en": "Please type the dosage (for example: 500mg).",
        "hi": "कृपया खुराक लिखें (जैसे: 500mg)।",
    },
    "MEDICATION_ASK_FREQUENCY": {
        "en": "How often do you take it?\n\n1. Once a day\n2. Twice a day\n3. Three times a day\n4. Only when needed",
        "hi": "आप इसे कितनी बार लेते हैं?\n\n1. दिन में एक बार\n2. दिन में दो बार\n3. दिन में तीन बार\n4. केवल ज़रूरत पर",
    },
    "MEDICATION_FREQUENCY_ERROR": {
        "en": "Please reply with a number from 1 to 4.",
        "hi": "कृपया 1 से 4 तक कोई संख्या भेजें।",
    },
    "MEDICATION_ASK_TIMES": {
        "en": "At what time should I remind you? Send {count} time(s) in 24-hour format, separated by commas.\n\n"
              "Example: 08:00, 20:00",
        "hi": "मैं आपको किस समय याद दिलाऊं? {count} समय 24-घंटे के प्रारूप में, कॉमा से अलग करके भेजें।\n\n"
              "उदाहरण: 08:00, 20:00",
    },
    "MEDICATION_TIMES_ERROR": {
        "en": "I need exactly {count} time(s) like 08:00, separated by commas. Please try again.",
        "hi": "मुझे 08:00 जैसे ठीक {count} समय चाहिए, कॉमा से अलग करके। कृपया फिर से प्रयास करें।",
    },
    "MEDICATION_CONFIRM": {
        "en": "Please confirm:\n\n💊 {name}\nDosage: {dosage}\nHow often: {frequency}\nTimes: {times}\n\n"
              "1. Save\n2. Cancel",
        "hi": "कृपया पुष्टि करें:\n\n💊 {name}\nखुराक: {dosage}\nकितनी बार: {frequency}\nसमय: {times}\n\n"
              "1. सेव करें\n2. रद्द करें",
    },
    "MEDICATION_CONFIRM_ERROR": {
        "en": "Please reply 1 to save or 2 to cancel.",
        "hi": "सेव करने के लिए 1 या रद्द करने के लिए 2 भेजें।",
    },
    "MEDICATION_SAVED": {
        "en": "✅ {name} has been added to your medications.",
        "hi": "✅ {name} आपकी दवाओं में जोड़ दी गई है।",
    },
    "MEDICATION_LIST": {
        "en": "💊 *Your medications*\n\n{items}",
        "hi": "💊 *आपकी दवाएं*\n\n{items}",
    },
    "MEDICATION_LIST_EMPTY": {
        "en": "You have no medications saved yet. Type 'add medication' to add one.",
        "hi": "आपकी कोई दवा अभी सेव नहीं है। जोड़ने के लिए 'दवा जोड़ें' टाइप करें।",
    },
    "ADHERENCE_RECORDED": {
        "en": "✅ Noted! {name} marked as taken. Well done.",
        "hi": "✅ दर्ज किया! {name} ले ली गई है। बहुत बढ़िया।",
    },
    "ADHERENCE_NONE": {
        "en": "I couldn't find any active medication to mark. Type 'add medication' to add one.",
        "hi": "मुझे चिह्नित करने के लिए कोई सक्रिय दवा नहीं मिली। जोड़ने के लिए 'दवा जोड़ें' टाइप करें।",
    },
    "MEDICATION_REMINDER": {
        "en": "⏰ *Medication Reminder*\n\nIt's time to take your medication: *{name}*\n\n"
              "Dosage: {dosage}\nTime: {time}\n\nPlease reply with \"taken\" after you've taken your medication.",
        "hi": "⏰ *दवा रिमाइंडर*\n\nआपकी दवा लेने का समय हो गया है: *{name}*\n\n"
              "खुराक: {dosage}\nसमय: {time}\n\nकृपया अपनी दवा लेने के बाद \"ले लिया\" के साथ जवाब दें।",
    },
    "CAREGIVER_MISSED_DOSE": {
        "en": "🚨 *Medication Alert*\n\n{elder} missed their scheduled medication: *{name}*\n\n"
              "Dosage: {dosage}\nScheduled time: {time}\n\nYou may want to check in with them.",
        "hi": "🚨 *दवा अलर्ट*\n\n{elder} ने अपनी निर्धारित दवा नहीं ली: *{name}*\n\n"
              "खुराक: {dosage}\nनिर्धारित समय: {time}\n\nआप उनसे संपर्क करना चाह सकते हैं।",
    },

    # ── Health readings ──────────────────────────────────────────
    "HEALTH_RECORD_TYPE": {
        "en": "What would you like to record?\n\n1. Blood pressure\n2. Blood sugar\n3. Weight",
        "hi": "आप क्या दर्ज करना चाहेंगे?\n\n1. रक्तचाप\n2. रक्त शर्करा\n3. वजन",
    },
    "HEALTH_RECORD_TYPE_ERROR": {
        "en": "Please reply 1, 2 or 3.",
        "hi": "कृपया 1, 2 या 3 भेजें।",
    },
    "HEALTH_ASK_BLOOD_PRESSURE": {
        "en": "Please send your blood pressure like 120/80.",
        "hi": "कृपया अपना रक्तचाप 120/80 की तरह भेजें।",
    },
    "HEALTH_ASK_BLOOD_SUGAR": {
        "en": "Please send your blood sugar in mg/dL (for example: 110).",
        "hi": "कृपया अपनी रक्त शर्करा mg/dL में भेजें (जैसे: 110)।",
    },
    "HEALTH_ASK_WEIGHT": {
        "en": "Please send your weight in kg (for example: 65).",
        "hi": "कृपया अपना वजन किलो में भेजें (जैसे: 65)।",
    },
    "HEALTH_BLOOD_PRESSURE_ERROR": {
        "en": "That doesn't look right. Please send it like 120/80.",
        "hi": "यह सही नहीं लगता। कृपया 120/80 की तरह भेजें।",
    },
    "HEALTH_BLOOD_SUGAR_ERROR": {
        "en": "Please send a number between 20 and 600.",
        "hi": "कृपया 20 से 600 के बीच की संख्या भेजें।",
    },
    "HEALTH_WEIGHT_ERROR": {
        "en": "Please send a number between 20 and 300.",
        "hi": "कृपया 20 से 300 के बीच की संख्या भेजें।",
    },
    "HEALTH_SAVED": {
        "en": "✅ Recorded your {label}: {value}.",
        "hi": "✅ आपका {label} दर्ज किया गया: {value}।",
    },
    "WEEKLY_REPORT": {
        "en": "📊 *Weekly Health Report*\n\nHere's a summary of your health this week:\n\n"
              "Blood Pressure: {blood_pressure}\nBlood Sugar: {blood_sugar}\nWeight: {weight}\n\n"
              "Medication Adherence: {adherence}%",
        "hi": "📊 *साप्ताहिक स्वास्थ्य रिपोर्ट*\n\nइस सप्ताह आपके स्वास्थ्य का सारांश यहां है:\n\n"
              "रक्तचाप: {blood_pressure}\nरक्त शर्करा: {blood_sugar}\nवजन: {weight}\n\n"
              "दवा अनुपालन: {adherence}%",
    },
    "NOT_RECORDED": {
        "en": "Not recorded",
        "hi": "दर्ज नहीं",
    },

    # ── Content generator ────────────────────────────────────────
    "INTERACTIONS_RESULT": {
        "en": "💊 *Medication Interaction Check*\n\n{summary}{details}\n\n"
              "Always confirm with your doctor or pharmacist.",
        "hi": "💊 *दवा इंटरैक्शन जांच*\n\n{summary}{details}\n\n"
              "हमेशा अपने डॉक्टर या फार्मासिस्ट से पुष्टि करें।",
    },
    "INTERACTIONS_NOT_NEEDED": {
        "en": "No potential interactions to check with a single medication.",
        "hi": "एक ही दवा के साथ जांचने के लिए कोई संभावित इंटरैक्शन नहीं है।",
    },
    "INTERACTIONS_UNAVAILABLE": {
        "en": "Unable to check for interactions at this time. Please consult your doctor or pharmacist, "
              "or type 'interactions' to try again later.",
        "hi": "इस समय इंटरैक्शन की जांच करने में असमर्थ। कृपया अपने डॉक्टर या फार्मासिस्ट से परामर्श करें, "
              "या बाद में फिर से 'interactions' टाइप करें।",
    },
    "RECOMMENDATIONS": {
        "en": "🌿 *Health tips for you*\n\n{text}",
        "hi": "🌿 *आपके लिए स्वास्थ्य सुझाव*\n\n{text}",
    },
    "RECOMMENDATIONS_FALLBACK": {
        "en": "Stay hydrated, take your medications as prescribed, and try to get regular light exercise. "
              "Consider speaking with your doctor during your next visit for more personalized advice.",
        "hi": "हाइड्रेटेड रहें, अपनी दवाओं को निर्धारित के अनुसार लें, और नियमित हल्के व्यायाम करने का प्रयास करें। "
              "अधिक व्यक्तिगत सलाह के लिए अपनी अगली मुलाकात के दौरान अपने डॉक्टर से बात करने पर विचार करें।",
    },
    "TRANSCRIPTION_FAILED": {
        "en": "I couldn't understand the voice message. Could you please type your message instead?",
        "hi": "मैं वॉयस मैसेज को समझ नहीं पाया। क्या आप अपना संदेश टाइप कर सकते हैं?",
    },

    # ── Settings ─────────────────────────────────────────────────
    "LANGUAGE_SETTINGS": {
        "en": "Which language would you like?\n\n1. English\n2. हिंदी (Hindi)",
        "hi": "आप कौन सी भाषा चाहेंगे?\n\n1. English\n2. हिंदी",
    },
    "LANGUAGE_CHANGED": {
        "en": "Done! I'll talk to you in English from now on.",
        "hi": "हो गया! अब से मैं आपसे हिंदी में बात करूंगा।",
    },

    # ── Caregiver proxy ──────────────────────────────────────────
    "PROXY_USAGE": {
        "en": "To act for a family member, type for: followed by their name and a command.\n\n"
              "Example: for:Mom taken",
        "hi": "परिवार के सदस्य के लिए कार्य करने के लिए, for: के बाद उनका नाम और आदेश लिखें।\n\n"
              "उदाहरण: for:Mom taken",
    },
    "PROXY_TARGET_NOT_FOUND": {
        "en": "I couldn't find \"{target}\" among the people you care for. Please check the name and try again.",
        "hi": "आप जिनकी देखभाल करते हैं उनमें मुझे \"{target}\" नहीं मिला। कृपया नाम जांचें और फिर से प्रयास करें।",
    },
    "PROXY_FLOW_UNSUPPORTED": {
        "en": "That step needs a few questions, so it can't be done for {target} from here. "
              "Please ask {target} to message me directly.",
        "hi": "इस काम में कुछ सवाल पूछने होते हैं, इसलिए इसे यहां से {target} के लिए नहीं किया जा सकता। "
              "कृपया {target} से सीधे मुझे संदेश भेजने को कहें।",
    },
    "PROXY_RESULT": {
        "en": "👪 For {name}:\n\n{body}",
        "hi": "👪 {name} के लिए:\n\n{body}",
    },
}

# Display labels used inside templates.
LABELS = {
    "blood_pressure": {"en": "blood pressure", "hi": "रक्तचाप"},
    "blood_sugar": {"en": "blood sugar", "hi": "रक्त शर्करा"},
    "weight": {"en": "weight", "hi": "वजन"},
    "once_daily": {"en": "Once a day", "hi": "दिन में एक बार"},
    "twice_daily": {"en": "Twice a day", "hi": "दिन में दो बार"},
    "thrice_daily": {"en": "Three times a day", "hi": "दिन में तीन बार"},
    "as_needed": {"en": "Only when needed", "hi": "केवल ज़रूरत पर"},
}


class _Params(dict):
    def __missing__(self, key):
        return ""


def _lang(lang) -> str:
    lang = getattr(lang, "value", lang)
    return lang if lang in SUPPORTED_LANGS else "en"


def t(key: str, lang=None, **params) -> str:
    """Render a template, falling back to English and then to the generic error."""
    entry = MESSAGES.get(key)
    if entry is None:
        logger.warning("Unknown template key %s", key)
        entry = MESSAGES["GENERIC_ERROR"]
    template = entry.get(_lang(lang)) or entry["en"]
    return template.format_map(_Params(params))


def label(key: str, lang=None) -> str:
    entry = LABELS.get(key)
    if entry is None:
        return key
    return entry.get(_lang(lang)) or entry["en"]
