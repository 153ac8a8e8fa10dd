from radrvu.study_models import ReferenceEntry


# 代表的なCMSのwork RVU（概算値）
RADIOLOGY_STUDY_DB = [
    ReferenceEntry("70450", "CT Head w/o Contrast", 1.02, "CT"),
    ReferenceEntry("70486", "CT Maxillofacial w/o Contrast", 1.13, "CT"),
    ReferenceEntry("71250", "CT Chest w/o Contrast", 1.16, "CT"),
    ReferenceEntry("71260", "CT Chest w/ Contrast", 1.24, "CT"),
    ReferenceEntry("74150", "CT Abdomen w/o Contrast", 1.19, "CT"),
    ReferenceEntry("74160", "CT Abdomen w/ Contrast", 1.27, "CT"),
    ReferenceEntry("74176", "CT Abdomen/Pelvis w/o Contrast", 1.74, "CT"),
    ReferenceEntry("74177", "CT Abdomen/Pelvis w/ Contrast", 1.82, "CT"),
    ReferenceEntry("74178", "CT Abdomen/Pelvis w/ & w/o Contrast", 1.96, "CT"),
    ReferenceEntry("72125", "CT Cervical Spine w/o Contrast", 1.14, "CT"),
    ReferenceEntry("72131", "CT Lumbar Spine w/o Contrast", 1.14, "CT"),

    ReferenceEntry("71045", "XR Chest 1 View", 0.22, "X-Ray"),
    ReferenceEntry("71046", "XR Chest 2 Views", 0.26, "X-Ray"),
    ReferenceEntry("73560", "XR Knee 1-2 Views", 0.18, "X-Ray"),
    ReferenceEntry("73030", "XR Shoulder 2+ Views", 0.19, "X-Ray"),
    ReferenceEntry("72040", "XR Cervical Spine 2-3 Views", 0.22, "X-Ray"),
    ReferenceEntry("72100", "XR Lumbar Spine 2-3 Views", 0.23, "X-Ray"),

    ReferenceEntry("70551", "MRI Brain w/o Contrast", 1.48, "MRI"),
    ReferenceEntry("70553", "MRI Brain w/ & w/o Contrast", 2.15, "MRI"),
    ReferenceEntry("72141", "MRI Cervical Spine w/o Contrast", 1.48, "MRI"),
    ReferenceEntry("72148", "MRI Lumbar Spine w/o Contrast", 1.48, "MRI"),
    ReferenceEntry("73221", "MRI Joint Upper Ext w/o Contrast", 1.35, "MRI"),
    ReferenceEntry("73721", "MRI Joint Lower Ext w/o Contrast", 1.35, "MRI"),

    ReferenceEntry("76700", "US Abdomen Complete", 1.09, "Ultrasound"),
    ReferenceEntry("76705", "US Abdomen Limited", 0.81, "Ultrasound"),
    ReferenceEntry("76830", "US Pelvis Transvaginal", 0.89, "Ultrasound"),
    ReferenceEntry("76856", "US Pelvis Complete", 0.89, "Ultrasound"),
    ReferenceEntry("93970", "US Duplex Venous Extremity Bilateral", 1.32, "Ultrasound"),
    ReferenceEntry("76536", "US Thyroid/Neck", 0.68, "Ultrasound"),
]

DEFAULT_RVU_RATE = 35.00  # $ / RVU
