"""
Outbound message texts for the chat channel.

Plain text only: the chat client renders no markdown. English is the
fallback for any language without a translation.
"""

DEFAULT_LANGUAGE = "en"

TEMPLATES: dict[str, dict[str, str]] = {
    # --- Worker onboarding ---
    "welcome_ask_name": {
        "en": "👋 Welcome to Chowk!\n\nI help daily-wage workers find jobs near them.\n\nLet's get you registered. What is your name?",
        "hi": "👋 चौक में आपका स्वागत है!\n\nहम दिहाड़ी मजदूरों को पास में काम दिलाते हैं।\n\nआपका नाम क्या है?",
    },
    "name_invalid": {
        "en": "Please enter a valid name (at least 2 characters).",
        "hi": "कृपया सही नाम लिखें (कम से कम 2 अक्षर)।",
    },
    "ask_skill": {
        "en": "Nice to meet you, {name}! 🙏\n\nWhat is your primary skill?\nExamples: {skills}",
        "hi": "आपसे मिलकर खुशी हुई, {name}! 🙏\n\nआपका मुख्य काम क्या है?\nजैसे: {skills}",
    },
    "skill_invalid": {
        "en": "Please enter a valid skill (e.g., painter, electrician, plumber).",
    },
    "ask_location": {
        "en": "📍 What is your work location or area?\n\nType the area and city (e.g., \"Andheri, Mumbai\").",
        "hi": "📍 आप किस इलाके में काम करते हैं?\n\nइलाका और शहर लिखें (जैसे \"Andheri, Mumbai\")।",
    },
    "location_invalid": {
        "en": "Please enter a valid location (e.g., \"Sector 62, Noida\").",
    },
    "ask_id_image": {
        "en": "📸 (Optional) Send a photo of your ID card.\n\nThis helps contractors verify your identity.\n\nType \"skip\" to skip this step.",
        "hi": "📸 (वैकल्पिक) अपने पहचान पत्र की फोटो भेजें।\n\nछोड़ने के लिए \"skip\" लिखें।",
    },
    "id_image_reprompt": {
        "en": "📸 Please send a photo of your ID card, or type \"skip\" to skip.",
    },
    "id_image_failed": {
        "en": "Failed to process your ID image. You can try again or type \"skip\" to continue without it.",
    },
    "registration_complete": {
        "en": "✅ Registration complete!\n\nName: {name}\nSkill: {skill}\nLocation: {location}\nID: {id_status}\n\nYou will receive job notifications matching your skill and location. 🔔",
        "hi": "✅ पंजीकरण पूरा हुआ!\n\nनाम: {name}\nकाम: {skill}\nइलाका: {location}\nपहचान: {id_status}\n\nआपको मिलते-जुलते काम की सूचना मिलेगी। 🔔",
    },
    # --- Contractor job posting ---
    "ask_title": {
        "en": "📝 Let's post a new job!\n\nWhat is the job title?\n(e.g., \"House Painting Work\", \"Electrical Wiring\")",
    },
    "title_invalid": {
        "en": "Please enter a valid job title (at least 3 characters).",
    },
    "ask_skill_required": {
        "en": "Got it: \"{title}\"\n\n🔧 What skill is required for this job?\n(e.g., painter, electrician, plumber, carpenter, mason)",
    },
    "skill_required_invalid": {
        "en": "Please enter a valid skill (e.g., painter, electrician).",
    },
    "ask_wage": {
        "en": "💰 What is the daily wage for this job?\n(e.g., \"500\", \"800/day\")",
    },
    "wage_invalid": {
        "en": "Please enter the wage amount.",
    },
    "ask_job_location": {
        "en": "📍 Where is the job location?\n(e.g., \"Andheri West, Mumbai\" or \"Sector 18, Noida\")",
    },
    "job_location_invalid": {
        "en": "Please enter a valid location.",
    },
    "ask_workers_needed": {
        "en": "👷 How many workers do you need?\n(Enter a number, e.g., 1, 2, 5)",
    },
    "workers_needed_invalid": {
        "en": "Please enter a valid number of workers (1-100).",
    },
    "job_posted": {
        "en": "✅ Job posted!\n\nTitle: {title}\nSkill: {skill}\nWage: {wage}\nLocation: {location}\nWorkers needed: {workers_needed}\nJob ID: {job_id}\n\n🔔 Notifying matching workers now...",
    },
    # --- Flow control ---
    "flow_reset": {
        "en": "Something went wrong. Type \"hi\" to register or \"post job\" to post a job, and we will start over.",
    },
    "flow_cancelled": {
        "en": "Okay, cancelled. Type \"hi\" to register or \"post job\" to post a job.",
    },
    "help": {
        "en": "I can help you with:\n1. Register as a worker: type \"hi\"\n2. Post a job: type \"post job\"\n3. Accept a job: reply \"YES <job id>\"\n4. Verify attendance (contractors): send the worker's 6-digit OTP\n5. Cancel: \"cancel <job id>\"\n6. See open jobs: type \"jobs\"\n7. Job details: \"job <job id>\"",
        "hi": "मैं इनमें मदद कर सकता हूँ:\n1. मजदूर पंजीकरण: \"hi\" लिखें\n2. काम डालें: \"post job\" लिखें\n3. काम स्वीकार करें: \"HAAN <job id>\" लिखें\n4. हाज़िरी (ठेकेदार): मजदूर का 6 अंकों का OTP भेजें\n5. रद्द करें: \"cancel <job id>\"\n6. खुले काम देखें: \"jobs\" लिखें\n7. काम की जानकारी: \"job <job id>\"",
    },
    "apology": {
        "en": "❌ Sorry, something went wrong. Please try again.",
        "hi": "❌ माफ़ कीजिए, कुछ गड़बड़ हो गई। कृपया फिर से कोशिश करें।",
    },
    "image_unexpected": {
        "en": "I received an image, but I'm not expecting one right now. Type \"hi\" to start registration.",
    },
    # --- Matching ---
    "job_alert": {
        "en": "🏗️ New work available!\n\nSkill: {skill}\nLocation: {location}\nWage: {wage}\nDates: {start_date} to {end_date}\nMeeting point: {meeting_point}\nInsurance: {insurance}\n\nReply YES {job_id} to accept this job.",
        "hi": "🏗️ नया काम उपलब्ध है!\n\nकाम: {skill}\nजगह: {location}\nमजदूरी: {wage}\nतारीख: {start_date} से {end_date}\nमिलने की जगह: {meeting_point}\nबीमा: {insurance}\n\nस्वीकार करने के लिए HAAN {job_id} लिखें।",
    },
    "no_workers_found": {
        "en": "😕 No available workers were found for \"{title}\" right now. Your job stays open and workers can still accept it.",
    },
    "workers_notified": {
        "en": "🔔 {count} worker(s) have been notified about \"{title}\".",
    },
    # --- Acceptance ---
    "accept_otp": {
        "en": "✅ You accepted the job \"{title}\"!\n\nYour OTP is: {otp}\n\nShare this OTP with the contractor at the meeting point: {meeting_point}\n\nDo not share it with anyone else. The contractor will verify it to confirm your attendance.",
        "hi": "✅ आपने काम \"{title}\" स्वीकार किया!\n\nआपका OTP है: {otp}\n\nयह OTP ठेकेदार को मिलने की जगह पर दें: {meeting_point}\n\nइसे किसी और को न बताएं।",
    },
    "accept_reply": {
        "en": "✅ Accepted! Your OTP has been sent in a separate message.",
        "hi": "✅ स्वीकार हो गया! आपका OTP अलग संदेश में भेजा गया है।",
    },
    "otp_reissued": {
        "en": "You have already accepted this job. A fresh OTP has been sent to you.",
    },
    "contractor_worker_accepted": {
        "en": "👷 {worker_name} has accepted your job \"{title}\"!\n\nThey will come to the meeting point: {meeting_point}\nPositions remaining: {remaining}\n\nAsk them for their OTP and send it here to verify attendance.",
    },
    "job_filled": {
        "en": "🎉 All {workers_needed} position(s) for \"{title}\" have been filled.",
    },
    "job_not_found": {
        "en": "❌ Job not found. Please check the job ID and try again.",
        "hi": "❌ काम नहीं मिला। कृपया job ID जांचें।",
    },
    "job_already_filled": {
        "en": "😔 Sorry, this job has already been filled.",
        "hi": "😔 माफ़ कीजिए, यह काम भर चुका है।",
    },
    "already_applied": {
        "en": "You have already responded to this job.",
    },
    "not_registered": {
        "en": "You are not registered as a worker yet. Type \"hi\" to register first.",
        "hi": "आप अभी पंजीकृत नहीं हैं। पहले \"hi\" लिखकर पंजीकरण करें।",
    },
    "worker_busy": {
        "en": "You are currently booked on another job until {available_from}.",
    },
    "no_recent_job": {
        "en": "There are no open jobs matching your skill right now. We will notify you when one comes up.",
    },
    "open_jobs": {
        "en": "🔎 Open jobs for you:\n\n{lines}\n\nReply YES <job id> to accept, or \"job <job id>\" for details.",
        "hi": "🔎 आपके लिए खुले काम:\n\n{lines}\n\nस्वीकार करने के लिए HAAN <job id> लिखें, या जानकारी के लिए \"job <job id>\"।",
    },
    "open_job_line": {
        "en": "{job_id} | {title} | {wage} | {start_date} | {location}",
    },
    "job_details": {
        "en": "📋 {title} ({job_id})\n\nSkill: {skill}\nWage: {wage}\nLocation: {location}\nMeeting point: {meeting_point}\nDates: {start_date} to {end_date}\nInsurance: {insurance}\nStatus: {status}\nPositions open: {remaining} of {workers_needed}",
    },
    "job_details_workers": {
        "en": "\n\nWorkers:\n{lines}",
    },
    # --- Attendance ---
    "attendance_confirmed_worker": {
        "en": "✅ Attendance confirmed for \"{title}\"!\n\nWork dates: {start_date} to {end_date}\nWage: {wage}",
        "hi": "✅ हाज़िरी पक्की! \"{title}\"\n\nकाम: {start_date} से {end_date}\nमजदूरी: {wage}",
    },
    "otp_verified_contractor": {
        "en": "✅ OTP verified! Attendance confirmed.\n\nWorker: {worker_name}\nPhone: {worker_phone}\nID number: {national_id}\nJob: {title}",
    },
    "otp_invalid": {
        "en": "❌ Invalid or expired OTP. Make sure the worker gave you the correct OTP.",
    },
    "otp_throttled": {
        "en": "⏳ Too many wrong OTPs. Please wait {seconds} seconds and try again.",
    },
    "otp_worker_busy": {
        "en": "❌ This worker is already confirmed on another job for these dates. Attendance was not marked.",
    },
    # --- Cancellation ---
    "cancelled_by_worker": {
        "en": "❌ {worker_name} cancelled for your job \"{title}\".",
    },
    "cancelled_by_contractor": {
        "en": "❌ The contractor cancelled your job \"{title}\". You are now available for other jobs.",
        "hi": "❌ ठेकेदार ने आपका काम \"{title}\" रद्द किया। अब आप दूसरे काम ले सकते हैं।",
    },
    "cancel_done": {
        "en": "Cancelled. The other party has been notified.",
    },
    "cancel_not_allowed": {
        "en": "Cannot cancel: attendance has already been confirmed.",
    },
    "cancel_not_found": {
        "en": "No matching application was found to cancel.",
    },
    "cancel_usage": {
        "en": "To cancel, send \"cancel <job id>\". Contractors add the worker's phone: \"cancel <job id> <phone>\".",
    },
    "job_cancelled": {
        "en": "Job \"{title}\" cancelled. {count} worker(s) notified.",
    },
    "job_cancelled_worker": {
        "en": "❌ The job \"{title}\" has been cancelled by the contractor.",
    },
}


def render(key: str, language: str | None = None, **values) -> str:
    variants = TEMPLATES[key]
    text = variants.get(language or DEFAULT_LANGUAGE) or variants[DEFAULT_LANGUAGE]
    return text.format(**values)
